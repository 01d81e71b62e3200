"""
Lead Billing Service Data Models

Campaigns, leads, payments and pending unlocks for prepaid lead credits,
plus the request/response models of the HTTP API.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


# ====================
# Pricing bounds
# ====================

MIN_PRICE_PER_LEAD = 25
MAX_PRICE_PER_LEAD = 70
DEPOSIT_CREDIT_AMOUNT = 2
RECHARGE_BUNDLES = (5, 10)


# ====================
# Enumerations
# ====================

class CampaignStatus(str, Enum):
    """Campaign lifecycle states"""
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    WARMUP = "WARMUP"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class DepositStatus(str, Enum):
    """Campaign deposit payment states"""
    NONE = "NONE"
    CHECKOUT_CREATED = "CHECKOUT_CREATED"
    PAID = "PAID"
    FAILED = "FAILED"


class LeadStatus(str, Enum):
    """Lead engagement states"""
    CONTACTED = "CONTACTED"
    OPENED = "OPENED"
    REPLIED = "REPLIED"
    INTERESTED = "INTERESTED"
    QUALIFIED = "QUALIFIED"
    PAID = "PAID"
    NOT_INTERESTED = "NOT_INTERESTED"
    BOUNCED = "BOUNCED"
    UNSUBSCRIBED = "UNSUBSCRIBED"


UNLOCKABLE_LEAD_STATUSES = frozenset({LeadStatus.QUALIFIED, LeadStatus.INTERESTED})


class PaymentType(str, Enum):
    DEPOSIT = "DEPOSIT"
    CREDIT_RECHARGE = "CREDIT_RECHARGE"
    LEAD_UNLOCK = "LEAD_UNLOCK"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    CANCELED = "CANCELED"


class MarketDifficulty(str, Enum):
    """Difficulty of reaching the target market"""
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
    VERY_HARD = "VERY_HARD"


class PricingRecommendation(str, Enum):
    GO = "GO"
    GO_WITH_CAUTION = "GO_WITH_CAUTION"
    NO_GO = "NO_GO"


class CheckoutType(str, Enum):
    """Value of the `type` key in checkout session metadata"""
    DEPOSIT = "deposit"
    CREDIT_RECHARGE = "credit_recharge"


class GatewayEventType(str, Enum):
    CHECKOUT_COMPLETED = "checkout.session.completed"
    CHECKOUT_EXPIRED = "checkout.session.expired"


# ====================
# Core Data Models
# ====================

class Customer(BaseModel):
    """Paying customer account"""
    id: str
    email: str
    name: Optional[str] = None
    company_name: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    created_at: Optional[datetime] = None


class Campaign(BaseModel):
    """
    Outreach campaign funded with prepaid lead credits.

    `price_per_lead` stays null until an administrator approves a price.
    `credit_balance` and the deposit fields change only inside ledger or
    reconciliation transactions.
    """
    id: str
    customer_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    target_criteria: Dict[str, Any] = Field(default_factory=dict)
    status: CampaignStatus = CampaignStatus.DRAFT

    # Pricing gate
    price_per_lead: Optional[float] = None
    estimated_tam: Optional[int] = None
    market_difficulty: Optional[MarketDifficulty] = None
    admin_notes: Optional[str] = None
    price_approved_at: Optional[datetime] = None
    price_approved_by: Optional[str] = None

    # Deposit
    deposit_status: DepositStatus = DepositStatus.NONE
    deposit_checkout_id: Optional[str] = None
    deposit_paid_at: Optional[datetime] = None

    # Ledger
    credit_balance: int = Field(default=0, ge=0)
    total_paid: int = Field(default=0, ge=0, description="Number of leads revealed")

    budget: float = Field(default=0, ge=0)
    max_leads: Optional[int] = None

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Lead(BaseModel):
    """Sales lead; contact fields are masked until revealed"""
    id: str
    campaign_id: str
    customer_id: str
    first_name: str
    last_name: str
    email: str
    company: str
    title: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    status: LeadStatus = LeadStatus.CONTACTED
    quality_score: Optional[int] = None
    is_revealed: bool = False
    revealed_at: Optional[datetime] = None
    paid_amount: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PendingLeadUnlock(BaseModel):
    """Reservation tying a lead to an in-flight recharge checkout"""
    lead_id: str
    customer_id: str
    campaign_id: str
    checkout_session_id: str
    expires_at: datetime
    created_at: Optional[datetime] = None


class Payment(BaseModel):
    """Append-only payment audit record"""
    id: str
    customer_id: str
    campaign_id: str
    type: PaymentType
    amount: float
    currency: str = "eur"
    status: PaymentStatus = PaymentStatus.PENDING
    checkout_session_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ====================
# Pricing Models
# ====================

class PriceRange(BaseModel):
    min: float
    max: float


class LeadVolumeRange(BaseModel):
    min: int
    max: int


class PricingInput(BaseModel):
    estimated_tam: int
    market_difficulty: MarketDifficulty


class PricingAnalysis(BaseModel):
    """Priced recommendation for a target market"""
    recommendation: PricingRecommendation
    recommended_price: float
    price_range: PriceRange
    estimated_leads_per_month: LeadVolumeRange
    estimated_revenue_per_month: PriceRange
    reason: str
    input: PricingInput


class PriceValidation(BaseModel):
    valid: bool
    warning: Optional[str] = None
    error: Optional[str] = None


# ====================
# Gateway Models
# ====================

class CheckoutSession(BaseModel):
    """Hosted checkout session created at the payment provider"""
    session_id: str
    url: str
    amount: float
    currency: str
    expires_at: Optional[datetime] = None


class GatewayEvent(BaseModel):
    """Verified provider webhook event, normalized"""
    id: str
    type: str
    session_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    customer_id: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)


# ====================
# Ledger Results
# ====================

class RechargeOption(BaseModel):
    leads: int
    total: float
    label: str


class LeadUnlocked(BaseModel):
    requires_payment: Literal[False] = False
    message: str = "Lead unlocked successfully"
    lead: Lead
    amount_paid: float
    remaining_credits: int


class PaymentRequired(BaseModel):
    requires_payment: Literal[True] = True
    message: str = "No credits remaining. Please recharge to unlock this lead."
    lead_id: str
    campaign_id: str
    price_per_lead: float
    recharge_options: List[RechargeOption]


UnlockResult = Union[LeadUnlocked, PaymentRequired]


# ====================
# Request Models
# ====================

class CreateCampaignRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    target_criteria: Dict[str, Any] = Field(default_factory=dict)
    budget: float = Field(..., ge=0)
    max_leads: Optional[int] = Field(None, ge=1)


class UpdateCampaignStatusRequest(BaseModel):
    status: CampaignStatus


class AnalyzePricingRequest(BaseModel):
    estimated_tam: int = Field(..., ge=0, description="Total addressable market (contacts)")
    market_difficulty: MarketDifficulty


class SetPricingRequest(BaseModel):
    estimated_tam: int = Field(..., ge=0)
    market_difficulty: MarketDifficulty
    price_per_lead: float = Field(..., ge=MIN_PRICE_PER_LEAD, le=MAX_PRICE_PER_LEAD)
    admin_notes: Optional[str] = Field(None, max_length=2000)
    override: bool = Field(False, description="Allow replacing an already approved price")


class RejectCampaignRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class RechargeCheckoutRequest(BaseModel):
    lead_count: int
    pending_lead_id: Optional[str] = None

    @field_validator("lead_count")
    @classmethod
    def validate_lead_count(cls, v: int) -> int:
        if v not in RECHARGE_BUNDLES:
            raise ValueError(f"lead_count must be one of {list(RECHARGE_BUNDLES)}")
        return v


# ====================
# Response Models
# ====================

class CheckoutResponse(BaseModel):
    session_id: str
    url: str
    amount: float
    currency: str
    credit_amount: int


class CampaignCreditsResponse(BaseModel):
    campaign_id: str
    balance: int
    used: int
    deposit_status: DepositStatus
    price_per_lead: Optional[float] = None


class PricingDecisionResponse(BaseModel):
    message: str
    campaign: Campaign
    analysis: PricingAnalysis
    warning: Optional[str] = None


class CampaignActionResponse(BaseModel):
    message: str
    campaign: Campaign


class PendingPricingResponse(BaseModel):
    count: int
    campaigns: List[Campaign]


class CampaignStatsResponse(BaseModel):
    id: str
    name: str
    status: CampaignStatus
    total_paid: int
    credit_balance: int
    budget: float
    price_per_lead: Optional[float] = None
    spent: float
    remaining: float


class LeadListResponse(BaseModel):
    leads: List[Lead]
    total: int
    page: int
    limit: int
    total_pages: int


class WebhookAck(BaseModel):
    received: bool = True


class HealthCheckResponse(BaseModel):
    status: str
    service: str
    port: int
    version: str
    timestamp: str
    dependencies: Dict[str, str] = Field(default_factory=dict)
