"""API routes."""

import logging
from fastapi import APIRouter

from aquaflow.api.routes import (
    users, branches, inventory, branch_inventory, orders, branch_orders,
    delivery, drivers, recycling, emergency, factory_requests, purchases,
    factory_waste, reports,
)

logger = logging.getLogger(__name__)

api_router = APIRouter()

# Accounts and directory
api_router.include_router(users.router, prefix="/users", tags=["users", "auth"])
api_router.include_router(users.employees_router, prefix="/employees", tags=["users"])
api_router.include_router(branches.router, prefix="/branches", tags=["branches"])

# Stock
api_router.include_router(inventory.router, prefix="/Inventory", tags=["inventory"])
api_router.include_router(branch_inventory.router, prefix="/BranchInventory", tags=["inventory", "branches"])
api_router.include_router(factory_requests.router, prefix="/FactoryRequests", tags=["inventory", "requests"])
api_router.include_router(purchases.router, prefix="/customer-purchases", tags=["purchases"])

# Orders and delivery
api_router.include_router(orders.router, prefix="/Orders", tags=["orders"])
api_router.include_router(branch_orders.router, prefix="/BranchOrders", tags=["orders", "branches"])
api_router.include_router(delivery.router, prefix="/Delivery", tags=["delivery"])
api_router.include_router(drivers.router, prefix="/Drivers", tags=["drivers"])

# Recycling. The /collection alias must be mounted before /RecyclingRequests/{id}.
api_router.include_router(recycling.bins_router, prefix="/RecyclingBins", tags=["recycling"])
api_router.include_router(
    recycling.collection_router, prefix="/RecyclingRequests/collection", tags=["recycling", "collection"]
)
api_router.include_router(recycling.requests_router, prefix="/RecyclingRequests", tags=["recycling"])
api_router.include_router(recycling.collection_router, prefix="/CollectionRequests", tags=["recycling", "collection"])
api_router.include_router(factory_waste.router, prefix="/FactoryWasteBin", tags=["recycling", "factory"])

# Reports
api_router.include_router(reports.router, prefix="/Reports", tags=["reports"])

# Emergencies
api_router.include_router(emergency.router, prefix="/emergency-requests", tags=["emergency", "bonus"])

logger.debug(f"API router assembled with {len(api_router.routes)} routes")
