from __future__ import annotations

from governor.api.routes.games import router as games_router
from governor.api.routes.health import router as health_router
from governor.api.routes.profiles import router as profiles_router

__all__ = ["games_router", "health_router", "profiles_router"]
