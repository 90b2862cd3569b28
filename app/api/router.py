"""
API Router - JSON endpoints consumed by automation workflows
"""
from fastapi import APIRouter

from app.api.customers import customers_router
from app.api.quickbooks import quickbooks_router
from app.api.spreadsheets import spreadsheets_router

api_router = APIRouter(tags=["API"])

# Include sub-routers
api_router.include_router(customers_router)
api_router.include_router(quickbooks_router)
api_router.include_router(spreadsheets_router)
