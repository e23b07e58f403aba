from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kitchenhub.api.router import api_router
from kitchenhub.core.config import get_settings
from kitchenhub.core.exceptions import KitchenHubError
from kitchenhub.core.logging import RequestIdMiddleware, setup_logging


async def kitchenhub_error_handler(request: Request, exc: KitchenHubError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, **exc.content})


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()
    app = FastAPI(title=settings.app_name)

    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(KitchenHubError, kitchenhub_error_handler)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    def health():
        return {"ok": True, "environment": settings.environment}

    return app


app = create_app()
