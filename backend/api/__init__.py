"""
API Routers
"""
from .alerts import router as alerts_router
from .metrics import router as metrics_router

__all__ = ["alerts_router", "metrics_router"]
