from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from parkway.api.router import api_router
from parkway.core.config import get_settings
from parkway.core.logging import setup_logging
from parkway.db.session import check_engine_health


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()

    app = FastAPI(title=settings.app_name)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/ready")
    def ready():
        if not check_engine_health():
            return JSONResponse(status_code=503, content={"status": "not ready", "checks": {"database": "failed"}})
        return {"status": "ready", "checks": {"database": "ok"}}

    return app


app = create_app()
