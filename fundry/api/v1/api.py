"""
V1 API router aggregation.

All versioned endpoint routers are mounted here under a common prefix.
The top-level ``main.py`` mounts this router at ``/api/v1``.
"""

from fastapi import APIRouter

from fundry.api.v1.endpoints import campaigns, flows, investments

api_router = APIRouter()

api_router.include_router(campaigns.router, prefix="/campaigns", tags=["Campaigns"])
api_router.include_router(investments.router, prefix="/investments", tags=["Investments"])
api_router.include_router(flows.router, prefix="/investment-flows", tags=["Investment flow"])
