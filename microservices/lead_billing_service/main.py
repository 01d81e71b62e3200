"""
Lead Billing Microservice API

Prepaid lead credits: campaign pricing gate, deposit and recharge checkouts,
atomic lead unlocks and idempotent Stripe webhook reconciliation.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional, Union

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))
from core.auth_dependencies import require_admin, require_user
from core.config_manager import ConfigManager
from core.logger import setup_service_logger

from .factory import LeadBillingComponents, create_lead_billing_components
from .models import (
    AnalyzePricingRequest,
    Campaign,
    CampaignActionResponse,
    CampaignCreditsResponse,
    CampaignStatsResponse,
    CheckoutResponse,
    CreateCampaignRequest,
    HealthCheckResponse,
    Lead,
    LeadListResponse,
    LeadUnlocked,
    PaymentRequired,
    PendingPricingResponse,
    PricingAnalysis,
    PricingDecisionResponse,
    RechargeCheckoutRequest,
    RejectCampaignRequest,
    SetPricingRequest,
    UpdateCampaignStatusRequest,
    WebhookAck,
)
from .protocols import LeadBillingError
from .routes_registry import SERVICE_METADATA, get_all_routes, get_routes_metadata

# Initialize configuration manager
config_manager = ConfigManager("lead_billing_service")
config = config_manager.get_service_config()

# Configure logging
logger = setup_service_logger("lead_billing_service", level=config.log_level.upper())

if config.debug:
    config_manager.print_config_summary(show_secrets=False)

# Global variables
components: Optional[LeadBillingComponents] = None
scheduler = None  # APScheduler for the pending unlock sweep
SERVICE_PORT = config.service_port or 8240

ERROR_STATUS_CODES = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ACCESS_DENIED": status.HTTP_403_FORBIDDEN,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "INSUFFICIENT_CREDITS": status.HTTP_409_CONFLICT,
    "SIGNATURE_INVALID": status.HTTP_400_BAD_REQUEST,
    "GATEWAY_ERROR": status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    global components, scheduler

    try:
        components = create_lead_billing_components(config=config_manager)
        await components.repository.initialize()

        # Start pending unlock sweep (APScheduler)
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler

            scheduler = AsyncIOScheduler()
            scheduler.add_job(
                components.registry.sweep_expired,
                'interval',
                minutes=config.payment.pending_unlock_sweep_minutes,
                id='pending_unlock_sweep_job',
                replace_existing=True,
            )
            scheduler.start()
            logger.info(
                f"✅ Pending unlock sweep scheduled every {config.payment.pending_unlock_sweep_minutes} min"
            )
        except Exception as e:
            logger.warning(f"⚠️  Failed to start pending unlock sweep: {e}")
            scheduler = None

        logger.info(f"✅ Lead billing service started on port {SERVICE_PORT}")
        yield

    except Exception as e:
        logger.error(f"Failed to initialize lead billing service: {e}")
        raise
    finally:
        if scheduler:
            try:
                scheduler.shutdown()
                logger.info("✅ Pending unlock sweep stopped")
            except Exception as e:
                logger.error(f"❌ Failed to stop scheduler: {e}")

        if components:
            await components.repository.close()
            logger.info("Lead billing service database connections closed")


app = FastAPI(
    title="Lead Billing Service",
    description="Prepaid lead credits, pricing gate and Stripe reconciliation",
    version=SERVICE_METADATA["version"],
    lifespan=lifespan,
)


# ====================
# Dependency Injection
# ====================


async def get_components() -> LeadBillingComponents:
    """Get wired service components"""
    if not components:
        raise HTTPException(status_code=503, detail="Lead billing service not initialized")
    return components


# ====================
# Error handlers
# ====================


@app.exception_handler(LeadBillingError)
async def lead_billing_error_handler(request: Request, exc: LeadBillingError):
    status_code = ERROR_STATUS_CODES.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(ValueError)
async def validation_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "code": "VALIDATION_ERROR"},
    )


# ====================
# Health Check and Service Info
# ====================


@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """Basic health check"""
    dependencies = {}

    try:
        db = getattr(components.repository, "db", None) if components else None
        if db:
            result = await db.health_check()
            dependencies["database"] = "healthy" if result and result.get("healthy") else "unhealthy"
        else:
            dependencies["database"] = "not_configured"
    except Exception:
        dependencies["database"] = "unhealthy"

    dependencies["scheduler"] = "healthy" if scheduler and scheduler.running else "not_configured"

    overall = "healthy" if all(v in ["healthy", "not_configured"] for v in dependencies.values()) else "degraded"

    return HealthCheckResponse(
        status=overall,
        service="lead_billing_service",
        port=SERVICE_PORT,
        version=SERVICE_METADATA["version"],
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies=dependencies,
    )


@app.get("/health/detailed", response_model=HealthCheckResponse)
async def health_check_detailed():
    """Detailed health check with full dependencies"""
    return await health_check()


@app.get("/api/v1/lead-billing/info")
async def service_info():
    return {
        **SERVICE_METADATA,
        **get_routes_metadata(),
        "routes": [route["path"] for route in get_all_routes()],
    }


# ====================
# Payments
# ====================


@app.post("/api/v1/payments/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    svc: LeadBillingComponents = Depends(get_components),
):
    """Stripe webhook endpoint (unauthenticated, signature verified)"""
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")
    payload = await request.body()
    return await svc.reconciler.handle_webhook(payload, stripe_signature)


@app.post("/api/v1/payments/campaigns/{campaign_id}/deposit", response_model=CheckoutResponse)
async def create_deposit_checkout(
    campaign_id: str,
    admin_id: str = Depends(require_admin),
    svc: LeadBillingComponents = Depends(get_components),
):
    """Create the deposit checkout of a priced campaign"""
    logger.info(f"Deposit checkout requested for campaign {campaign_id} by {admin_id}")
    return await svc.payments.create_deposit_checkout(campaign_id)


@app.post("/api/v1/payments/campaigns/{campaign_id}/recharge", response_model=CheckoutResponse)
async def create_recharge_checkout(
    campaign_id: str,
    request: RechargeCheckoutRequest,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    """Create a credit recharge checkout, optionally reserving a lead"""
    return await svc.payments.create_recharge_checkout(
        campaign_id=campaign_id,
        customer_id=user_id,
        lead_count=request.lead_count,
        pending_lead_id=request.pending_lead_id,
    )


@app.get("/api/v1/payments/campaigns/{campaign_id}/credits", response_model=CampaignCreditsResponse)
async def get_campaign_credits(
    campaign_id: str,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.ledger.get_campaign_credits(campaign_id, customer_id=user_id)


# ====================
# Leads
# ====================


@app.get("/api/v1/leads", response_model=LeadListResponse)
async def list_leads(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.ledger.list_leads(user_id, page=page, limit=limit)


@app.get("/api/v1/leads/{lead_id}", response_model=Lead)
async def get_lead(
    lead_id: str,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.ledger.get_lead(lead_id, user_id)


@app.post("/api/v1/leads/{lead_id}/unlock", response_model=Union[LeadUnlocked, PaymentRequired])
async def unlock_lead(
    lead_id: str,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    """Spend one credit to reveal a lead, or get recharge options"""
    return await svc.ledger.unlock_lead(lead_id, user_id)


# ====================
# Campaigns
# ====================


@app.post("/api/v1/campaigns", response_model=Campaign, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    request: CreateCampaignRequest,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.campaigns.create_campaign(user_id, request)


@app.get("/api/v1/campaigns", response_model=list[Campaign])
async def list_campaigns(
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.campaigns.list_campaigns(user_id)


@app.get("/api/v1/campaigns/{campaign_id}", response_model=Campaign)
async def get_campaign(
    campaign_id: str,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.campaigns.get_campaign(campaign_id, customer_id=user_id)


@app.delete("/api/v1/campaigns/{campaign_id}")
async def delete_campaign(
    campaign_id: str,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    await svc.campaigns.delete_campaign(campaign_id, user_id)
    return {"message": "Campaign deleted successfully"}


@app.get("/api/v1/campaigns/{campaign_id}/stats", response_model=CampaignStatsResponse)
async def get_campaign_stats(
    campaign_id: str,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.campaigns.get_campaign_stats(campaign_id, user_id)


@app.post("/api/v1/campaigns/{campaign_id}/submit", response_model=Campaign)
async def submit_campaign(
    campaign_id: str,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.campaigns.submit_for_review(campaign_id, user_id)


@app.patch("/api/v1/campaigns/{campaign_id}/status", response_model=Campaign)
async def update_campaign_status(
    campaign_id: str,
    request: UpdateCampaignStatusRequest,
    user_id: str = Depends(require_user),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.campaigns.update_status(campaign_id, request.status, customer_id=user_id)


# ====================
# Admin
# ====================


@app.post("/api/v1/admin/campaigns/analyze-pricing", response_model=PricingAnalysis)
async def analyze_pricing(
    request: AnalyzePricingRequest,
    admin_id: str = Depends(require_admin),
    svc: LeadBillingComponents = Depends(get_components),
):
    """Preview pricing for a market estimate; no campaign is modified"""
    return svc.campaigns.analyze_pricing(request.estimated_tam, request.market_difficulty)


@app.get("/api/v1/admin/campaigns/pending-pricing", response_model=PendingPricingResponse)
async def list_pending_pricing(
    admin_id: str = Depends(require_admin),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.campaigns.list_pending_pricing()


@app.patch("/api/v1/admin/campaigns/{campaign_id}/pricing", response_model=PricingDecisionResponse)
async def set_campaign_pricing(
    campaign_id: str,
    request: SetPricingRequest,
    admin_id: str = Depends(require_admin),
    svc: LeadBillingComponents = Depends(get_components),
):
    return await svc.campaigns.set_pricing(campaign_id, request, admin_id)


@app.patch("/api/v1/admin/campaigns/{campaign_id}/approve", response_model=CampaignActionResponse)
async def approve_campaign(
    campaign_id: str,
    admin_id: str = Depends(require_admin),
    svc: LeadBillingComponents = Depends(get_components),
):
    campaign = await svc.campaigns.approve_campaign(campaign_id)
    return CampaignActionResponse(message="Campaign approved successfully", campaign=campaign)


@app.patch("/api/v1/admin/campaigns/{campaign_id}/reject", response_model=CampaignActionResponse)
async def reject_campaign(
    campaign_id: str,
    request: Optional[RejectCampaignRequest] = None,
    admin_id: str = Depends(require_admin),
    svc: LeadBillingComponents = Depends(get_components),
):
    reason = request.reason if request else None
    campaign = await svc.campaigns.reject_campaign(campaign_id, reason)
    message = f"Campaign rejected: {reason}" if reason else "Campaign rejected successfully"
    return CampaignActionResponse(message=message, campaign=campaign)


if __name__ == "__main__":
    uvicorn.run(
        "microservices.lead_billing_service.main:app",
        host="0.0.0.0",
        port=SERVICE_PORT,
        reload=config.debug,
        log_level=config.log_level.lower(),
    )
