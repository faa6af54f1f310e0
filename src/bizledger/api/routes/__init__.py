"""API routes."""

from bizledger.api.routes.access import router as access_router
from bizledger.api.routes.advances import router as advances_router
from bizledger.api.routes.health import router as health_router
from bizledger.api.routes.salaries import router as salaries_router

__all__ = ["access_router", "advances_router", "health_router", "salaries_router"]
