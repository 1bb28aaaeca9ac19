from fastapi import APIRouter

from moedinha.api.routes import (
    alerts,
    calendar,
    cron,
    distribution,
    health,
    invoices,
    metrics,
    orgs,
    recurring,
    reserves,
)


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(orgs.router)
api_router.include_router(distribution.router)
api_router.include_router(metrics.router)
api_router.include_router(alerts.router)
api_router.include_router(recurring.router)
api_router.include_router(calendar.router)
api_router.include_router(invoices.router)
api_router.include_router(reserves.router)
api_router.include_router(cron.router)
