"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from onboarding_server.routes.definition import router as definition_router
from onboarding_server.routes.profile import router as profile_router
from onboarding_server.routes.sessions import router as sessions_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(sessions_router, prefix=API_PREFIX)
    app.include_router(profile_router, prefix=API_PREFIX)
    app.include_router(definition_router, prefix=API_PREFIX)
