"""
Workflow Auth Portal - OAuth broker for automation workflows
FastAPI Application Entry Point
"""
import uvicorn
from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from starlette.middleware.sessions import SessionMiddleware
from contextlib import asynccontextmanager
from datetime import datetime
import logging

from app.core import settings, engine
from app.core.errors import register_exception_handlers
from app.core.migrations import run_migrations
from app.integrations import build_providers, GoogleOAuthClient
from app.api.router import api_router
from app.api.auth import router as auth_router
from app.api.admin import admin_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Lifespan for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: bring the schema up to date, build provider clients once
    applied = run_migrations(engine)
    if applied:
        logger.info(f"Applied migrations: {applied}")
    app.state.providers = build_providers(settings)
    logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT} (QuickBooks {settings.QB_ENVIRONMENT})")

    yield

    logger.info(f"{settings.APP_NAME} shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Google, Facebook, TikTok and QuickBooks token broker for n8n workflows",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        max_age=settings.SESSION_MAX_AGE,
        same_site="lax",
        https_only=settings.SESSION_HTTPS_ONLY,
    )
    register_exception_handlers(app)

    # Include routers
    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(api_router, prefix="/api")

    # Root redirect to dashboard
    @app.get("/")
    async def root():
        return RedirectResponse(url="/dashboard", status_code=302)

    # Health check
    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "time": datetime.now().isoformat(),
            "scopes": GoogleOAuthClient.REQUIRED_SCOPES,
        }

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
