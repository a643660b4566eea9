import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from quota_drugs.api.dependencies import get_db
from quota_drugs.api.v1 import router as api_router
from quota_drugs.config.config import settings
from quota_drugs.core.exceptions import register_exception_handlers
from quota_drugs.db.base import Base
from quota_drugs.db.session import engine
from quota_drugs.models import Department  # also registers every table on Base.metadata

logger = logging.getLogger("uvicorn")


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("quota_drugs").setLevel(settings.LOG_LEVEL)


async def prepare_database(db_engine: AsyncEngine) -> None:
    """
    Open one connection to prove the database is reachable.

    With ``AUTO_CREATE_TABLES`` set, missing tables are created from the
    model metadata; otherwise the schema is expected to come from Alembic.
    """
    async with db_engine.begin() as conn:
        if settings.AUTO_CREATE_TABLES:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Quota drug tables ensured from model metadata")
        else:
            await conn.run_sync(lambda _: None)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"Quota drug API {settings.VERSION} starting ({settings.ENVIRONMENT})"
    )
    try:
        await prepare_database(engine)
        logger.info("Database reachable, ready to serve quota drug requests")
    except Exception as e:
        # The app still starts; /health reports the outage
        logger.error(f"Database preparation failed: {e}")
        logger.error(traceback.format_exc())

    yield

    await engine.dispose()
    logger.info("Quota drug API stopped, database engine disposed")


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    # Domain errors first, then the catch-all
    register_exception_handlers(app)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: "
            + "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        )
        is_production = settings.ENVIRONMENT == "production"
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error": "Server error" if is_production else str(exc),
            },
        )

    @app.middleware("http")
    async def force_https(request: Request, call_next):
        behind_plain_http = request.headers.get("x-forwarded-proto") == "http"
        if settings.ENVIRONMENT == "production" and behind_plain_http:
            return RedirectResponse(str(request.url.replace(scheme="https")))
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000, compresslevel=6)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/health")
    async def health_check(db: AsyncSession = Depends(get_db)):
        """Liveness plus a read against the departments table."""
        try:
            departments = (
                await db.execute(select(func.count(Department.id)))
            ).scalar()
        except Exception as e:
            logger.error(f"Health check failed: {e}", exc_info=True)
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "database": "unreachable",
                    "error": str(e),
                },
            )
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": settings.VERSION,
            "database": "connected",
            "departments": departments,
        }

    return app


app = create_app()
