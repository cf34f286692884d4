import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.router import api_router
from app.background.scheduler import shutdown_scheduler, start_scheduler
from app.core.config import get_settings
from app.core.db import init_database, test_database_connection
from app.core.errors import register_exception_handlers
from app.middleware.security import setup_security_middleware
from app.services.websocket_events import register_websocket_handlers

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info("[LIFESPAN] Starting application initialization...")

    if await test_database_connection():
        if not settings.is_production:
            # Production schemas are managed by Alembic
            await init_database()
    else:
        logger.error("[LIFESPAN] Database connection failed")

    if settings.enable_scheduler:
        try:
            start_scheduler()
        except Exception as e:
            logger.warning(f"[LIFESPAN] Error starting scheduler: {e}")

    logger.info("[LIFESPAN] Application startup complete - ready to accept requests")
    yield

    logger.info("[LIFESPAN] Shutting down...")
    shutdown_scheduler()


app = FastAPI(
    title=settings.project_name,
    debug=settings.debug,
    lifespan=lifespan,
)

logger.info(f"[CORS] Configured origins: {settings.backend_cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
setup_security_middleware(app)
register_exception_handlers(app)
register_websocket_handlers()

app.include_router(api_router, prefix="/api")


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    return {"status": "ok", "environment": settings.environment}
