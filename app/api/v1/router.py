"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from app.api.v1 import admin, audit_logs, disputes, payments, webhooks

api_router = APIRouter()

# Payments
api_router.include_router(payments.router, prefix="/payment", tags=["Payments"])

# Disputes
api_router.include_router(disputes.router, prefix="/disputes", tags=["Disputes"])

# Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])

# Audit trail
api_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["Audit"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
