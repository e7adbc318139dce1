from fastapi import APIRouter

from src.agency_crm.api.endpoints import (
    agencies,
    billing,
    campaigns,
    health,
    imports,
    invitations,
    leads,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(agencies.router)
api_router.include_router(invitations.router)
api_router.include_router(imports.router)
api_router.include_router(campaigns.router)
api_router.include_router(leads.router)
api_router.include_router(billing.router)
