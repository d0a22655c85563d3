from __future__ import annotations

from fastapi import FastAPI

from promotracker.api.router import api_router
from promotracker.core.config import get_settings
from promotracker.core.log import setup_logging


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title=settings.app_name)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.environment}

    return app


app = create_app()
