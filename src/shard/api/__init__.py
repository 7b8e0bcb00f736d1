"""API package exports.

Exposes:
- `router`: FastAPI APIRouter with all endpoints
- `initialize_api()`: registers the runtime served by the routes
- `service_container`: holder the routes resolve the runtime from
"""

from .routes import initialize_api, router, service_container

__all__ = ["initialize_api", "router", "service_container"]
