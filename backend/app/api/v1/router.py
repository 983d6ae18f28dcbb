"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import orders, admin_orders, admin_transactions, admin_ops

router = APIRouter()

# Checkout, customer reads, public tracking
router.include_router(orders.router)

# Back office
router.include_router(admin_orders.router)
router.include_router(admin_transactions.router)

# Outbox / DLQ maintenance
router.include_router(admin_ops.router)
