from __future__ import annotations

import logging

from fastapi import FastAPI, Response
from fastapi.responses import RedirectResponse
from sqlalchemy import inspect
from starlette.requests import Request

from moms.auth.profiles import ProfileStore
from moms.core import database
from moms.core.config import get_settings
from moms.core.logging_config import configure_logging
from moms.routers import auth, functions, health, storage

logger = logging.getLogger(__name__)


CORE_ROUTERS = (
    (health.router, {"tags": ["health"]}),
    (auth.router, {}),
    (functions.router, {}),
    (storage.router, {}),
)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging("moms", settings.log_level)
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=settings.docs_url,
    )
    # one store per process so every request's listeners see the same writes
    application.state.profiles = ProfileStore()

    @application.middleware("http")
    async def enforce_utf8_json(request: Request, call_next):
        response = await call_next(request)
        if response.headers.get("content-type", "").startswith("application/json"):
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    @application.get("/favicon.ico")
    def favicon():
        return Response(status_code=204)

    for router, include_kwargs in CORE_ROUTERS:
        application.include_router(router, **include_kwargs)

    @application.get("/", include_in_schema=False)
    def root():
        target = settings.docs_url or "/docs"
        return RedirectResponse(target)

    @application.get("/__routes", include_in_schema=False)
    def routes_snapshot():
        return sorted(f"{route.path}  [{','.join(route.methods)}]" for route in application.router.routes)

    @application.get("/__dbcheck", include_in_schema=False)
    def dbcheck():
        return {"tables": inspect(database.engine).get_table_names()}

    @application.on_event("startup")
    def _startup():
        database.init_db()
        logger.info("startup complete app=%s version=%s", settings.app_name, settings.app_version)

    return application


app = create_app()
