"""
Lead Billing Service Routes Registry
Defines all API routes exposed by the service, for gateway registration and docs.
"""
from typing import List, Dict, Any

SERVICE_ROUTES = [
    # Health
    {
        "path": "/health",
        "methods": ["GET"],
        "auth_required": False,
        "description": "Basic health check endpoint"
    },
    {
        "path": "/health/detailed",
        "methods": ["GET"],
        "auth_required": False,
        "description": "Detailed health check with dependencies"
    },
    {
        "path": "/api/v1/lead-billing/info",
        "methods": ["GET"],
        "auth_required": False,
        "description": "Service metadata and capabilities"
    },
    # Payments
    {
        "path": "/api/v1/payments/webhook",
        "methods": ["POST"],
        "auth_required": False,
        "description": "Stripe webhook (signature verified)"
    },
    {
        "path": "/api/v1/payments/campaigns/{campaign_id}/deposit",
        "methods": ["POST"],
        "auth_required": True,
        "description": "Create deposit checkout (admin)"
    },
    {
        "path": "/api/v1/payments/campaigns/{campaign_id}/recharge",
        "methods": ["POST"],
        "auth_required": True,
        "description": "Create credit recharge checkout"
    },
    {
        "path": "/api/v1/payments/campaigns/{campaign_id}/credits",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Get campaign credit balance"
    },
    # Leads
    {
        "path": "/api/v1/leads",
        "methods": ["GET"],
        "auth_required": True,
        "description": "List customer leads (masked until unlocked)"
    },
    {
        "path": "/api/v1/leads/{lead_id}",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Get lead (masked until unlocked)"
    },
    {
        "path": "/api/v1/leads/{lead_id}/unlock",
        "methods": ["POST"],
        "auth_required": True,
        "description": "Spend one credit to unlock a lead"
    },
    # Campaigns
    {
        "path": "/api/v1/campaigns",
        "methods": ["GET", "POST"],
        "auth_required": True,
        "description": "List or create campaigns"
    },
    {
        "path": "/api/v1/campaigns/{campaign_id}",
        "methods": ["GET", "DELETE"],
        "auth_required": True,
        "description": "Get or delete a campaign"
    },
    {
        "path": "/api/v1/campaigns/{campaign_id}/stats",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Campaign spend statistics"
    },
    {
        "path": "/api/v1/campaigns/{campaign_id}/submit",
        "methods": ["POST"],
        "auth_required": True,
        "description": "Submit campaign for review"
    },
    {
        "path": "/api/v1/campaigns/{campaign_id}/status",
        "methods": ["PATCH"],
        "auth_required": True,
        "description": "Change campaign status"
    },
    # Admin
    {
        "path": "/api/v1/admin/campaigns/analyze-pricing",
        "methods": ["POST"],
        "auth_required": True,
        "description": "Preview pricing analysis"
    },
    {
        "path": "/api/v1/admin/campaigns/pending-pricing",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Campaigns awaiting a pricing decision"
    },
    {
        "path": "/api/v1/admin/campaigns/{campaign_id}/pricing",
        "methods": ["PATCH"],
        "auth_required": True,
        "description": "Set campaign price per lead"
    },
    {
        "path": "/api/v1/admin/campaigns/{campaign_id}/approve",
        "methods": ["PATCH"],
        "auth_required": True,
        "description": "Approve campaign (PENDING_REVIEW -> WARMUP)"
    },
    {
        "path": "/api/v1/admin/campaigns/{campaign_id}/reject",
        "methods": ["PATCH"],
        "auth_required": True,
        "description": "Reject campaign (PENDING_REVIEW -> DRAFT)"
    },
]

SERVICE_METADATA = {
    "service_name": "lead_billing_service",
    "version": "1.0.0",
    "tags": ["v1", "billing", "credits"],
    "capabilities": [
        "pricing_analysis",
        "campaign_pricing_gate",
        "credit_ledger",
        "lead_unlock",
        "stripe_checkout",
        "webhook_reconciliation",
    ]
}


def get_routes_metadata() -> Dict[str, Any]:
    """
    Compact route metadata for service discovery and the info endpoint.
    """
    public_routes = [r for r in SERVICE_ROUTES if not r["auth_required"]]
    return {
        "route_count": str(len(SERVICE_ROUTES)),
        "base_path": "/api/v1",
        "public_routes": ",".join(r["path"] for r in public_routes),
        "methods": "GET,POST,PATCH,DELETE",
        "health_check": "/health",
    }


def get_all_routes() -> List[Dict[str, Any]]:
    return SERVICE_ROUTES
