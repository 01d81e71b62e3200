"""
Campaign pricing analysis

Turns a market estimate (total addressable market + difficulty) into a
recommended price per lead, an acceptable price band and rough monthly
volume/revenue estimates. Pure functions, no I/O.
"""

import math
from typing import Dict, List, Tuple

from .models import (
    MAX_PRICE_PER_LEAD,
    MIN_PRICE_PER_LEAD,
    LeadVolumeRange,
    MarketDifficulty,
    PriceRange,
    PriceValidation,
    PricingAnalysis,
    PricingInput,
    PricingRecommendation,
)

# (minimum TAM, base price), checked top-down
TAM_TIERS: List[Tuple[int, int]] = [
    (10000, 30),
    (5000, 35),
    (2000, 40),
    (1000, 45),
    (500, 50),
    (0, 60),
]

DIFFICULTY_ADJUSTMENTS: Dict[MarketDifficulty, int] = {
    MarketDifficulty.EASY: -5,
    MarketDifficulty.MEDIUM: 0,
    MarketDifficulty.HARD: 5,
    MarketDifficulty.VERY_HARD: 10,
}

NO_GO_TAM = 200
CAUTION_TAM = 500

PRICE_BAND = 10
WARNING_MARGIN = 5

# Positive response rate assumptions and the monthly contactable share of the TAM
RESPONSE_RATE_LOW = 0.02
RESPONSE_RATE_HIGH = 0.04
MONTHLY_REACH_LOW = 0.1
MONTHLY_REACH_HIGH = 0.15


def clamp_price(price: float) -> float:
    return max(MIN_PRICE_PER_LEAD, min(MAX_PRICE_PER_LEAD, price))


def base_price_for_tam(estimated_tam: int) -> int:
    for min_tam, base_price in TAM_TIERS:
        if estimated_tam >= min_tam:
            return base_price
    return TAM_TIERS[-1][1]


def recommended_price(estimated_tam: int, market_difficulty: MarketDifficulty) -> float:
    adjustment = DIFFICULTY_ADJUSTMENTS.get(MarketDifficulty(market_difficulty), 0)
    return clamp_price(base_price_for_tam(estimated_tam) + adjustment)


class TieredPricingStrategy:
    """Tiered TAM pricing with a difficulty adjustment, clamped to 25-70"""

    def analyze(self, estimated_tam: int, market_difficulty: MarketDifficulty) -> PricingAnalysis:
        if estimated_tam < 0:
            raise ValueError("estimated_tam must be >= 0")
        market_difficulty = MarketDifficulty(market_difficulty)

        price = recommended_price(estimated_tam, market_difficulty)
        price_range = PriceRange(
            min=clamp_price(price - PRICE_BAND),
            max=clamp_price(price + PRICE_BAND),
        )

        if estimated_tam < NO_GO_TAM:
            recommendation = PricingRecommendation.NO_GO
            reason = (
                f"Market too small ({estimated_tam} prospects). "
                f"Minimum required: {NO_GO_TAM} prospects."
            )
        elif estimated_tam < CAUTION_TAM:
            recommendation = PricingRecommendation.GO_WITH_CAUTION
            reason = (
                f"Limited market ({estimated_tam} prospects). "
                "Lead potential is restricted, a higher price is recommended."
            )
        else:
            recommendation = PricingRecommendation.GO
            reason = f"Viable market ({estimated_tam} prospects). Good lead generation potential."

        leads = LeadVolumeRange(
            min=math.floor(estimated_tam * RESPONSE_RATE_LOW * MONTHLY_REACH_LOW),
            max=math.floor(estimated_tam * RESPONSE_RATE_HIGH * MONTHLY_REACH_HIGH),
        )

        return PricingAnalysis(
            recommendation=recommendation,
            recommended_price=price,
            price_range=price_range,
            estimated_leads_per_month=leads,
            estimated_revenue_per_month=PriceRange(min=leads.min * price, max=leads.max * price),
            reason=reason,
            input=PricingInput(estimated_tam=estimated_tam, market_difficulty=market_difficulty),
        )

    def validate_custom_price(
        self, price: float, estimated_tam: int, market_difficulty: MarketDifficulty
    ) -> PriceValidation:
        """
        Check an admin-chosen price against the hard bounds and the
        recommended band. Prices far outside the band stay valid but carry
        a warning.
        """
        if price < MIN_PRICE_PER_LEAD:
            return PriceValidation(valid=False, error=f"Minimum price: {MIN_PRICE_PER_LEAD}/lead")
        if price > MAX_PRICE_PER_LEAD:
            return PriceValidation(valid=False, error=f"Maximum price: {MAX_PRICE_PER_LEAD}/lead")

        analysis = self.analyze(estimated_tam, market_difficulty)
        if price < analysis.price_range.min - WARNING_MARGIN:
            return PriceValidation(
                valid=True,
                warning=(
                    f"Price below recommendation ({analysis.recommended_price:g}). "
                    "Profitability may be low."
                ),
            )
        if price > analysis.price_range.max + WARNING_MARGIN:
            return PriceValidation(
                valid=True,
                warning=(
                    f"Price above recommendation ({analysis.recommended_price:g}). "
                    "May discourage the customer."
                ),
            )
        return PriceValidation(valid=True)


default_strategy = TieredPricingStrategy()


def analyze(estimated_tam: int, market_difficulty: MarketDifficulty) -> PricingAnalysis:
    """Analyze with the default tiered strategy"""
    return default_strategy.analyze(estimated_tam, market_difficulty)
