"""Aggregate all v1 sub-routers."""

from fastapi import APIRouter

from traceaid.api.v1.admin import router as admin_router
from traceaid.api.v1.campaigns import router as campaigns_router
from traceaid.api.v1.donations import router as donations_router
from traceaid.api.v1.fundraisers import router as fundraisers_router
from traceaid.api.v1.health import router as health_router
from traceaid.api.v1.milestones import router as milestones_router
from traceaid.api.v1.payouts import router as payouts_router
from traceaid.api.v1.wallet import router as wallet_router

api_v1_router = APIRouter()

api_v1_router.include_router(health_router, tags=["health"])
api_v1_router.include_router(fundraisers_router, prefix="/fundraisers", tags=["fundraisers"])
api_v1_router.include_router(campaigns_router, prefix="/campaigns", tags=["campaigns"])
api_v1_router.include_router(milestones_router, prefix="/milestones", tags=["milestones"])
api_v1_router.include_router(payouts_router, prefix="/payouts", tags=["payouts"])
api_v1_router.include_router(wallet_router, prefix="/wallet", tags=["wallet"])
api_v1_router.include_router(donations_router, prefix="/donations", tags=["donations"])
api_v1_router.include_router(admin_router, prefix="/admin", tags=["admin"])
