"""
Portal Document Repository API with PostgreSQL and S3.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import config
from database.connection import Database
from storage.blob_store import S3BlobStore
from core.errors import (
    RepositoryError, NotFound, ValidationFailure, Unauthorized,
    TransientStoreConflict, AdapterFailure
)
from core.logger import get_logger
from middleware.security import (
    AccessLogMiddleware, SecurityHeadersMiddleware, setup_cors, setup_trusted_hosts
)
from routers.profile import router as profile_router
from routers.documents import router as documents_router
from routers.students import router as students_router
from routers.downloads import router as downloads_router

logger = get_logger(__name__)


# Repository failure kind -> HTTP status
ERROR_STATUS = {
    NotFound: 404,
    ValidationFailure: 400,
    Unauthorized: 403,
    TransientStoreConflict: 503,
    AdapterFailure: 502,
}


def _build_blob_store() -> Optional[S3BlobStore]:
    if not config.USE_S3:
        logger.info("S3 storage disabled - publishing and downloads unavailable")
        return None
    try:
        return S3BlobStore(
            bucket_name=config.S3_BUCKET_NAME,
            aws_access_key_id=config.S3_ACCESS_KEY_ID,
            aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
            region_name=config.S3_REGION,
            endpoint_url=config.S3_ENDPOINT_URL,
            prefix=config.DOCUMENTS_PREFIX,
            auto_create_bucket=config.S3_AUTO_CREATE_BUCKET,
        )
    except Exception as e:
        logger.error(f"Failed to initialize S3 blob store: {e}", exc_info=True)
        logger.warning("Continuing without S3 - publishing and downloads unavailable")
        return None


def create_app(database: Optional[Database] = None, blob_store=None) -> FastAPI:
    """
    Build the API application.

    Args:
        database: Storage handle; built from DATABASE_URL when omitted
        blob_store: Blob store; built from the S3 settings when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize database and blob store on startup."""
        logger.info("=" * 60)
        logger.info(f"Starting {config.APP_NAME} ({config.ENVIRONMENT})...")
        logger.info("=" * 60)

        owns_database = database is None
        try:
            app.state.database = database or Database(
                database_url=config.DATABASE_URL,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW,
                sqlite_busy_timeout=config.SQLITE_BUSY_TIMEOUT_SECONDS,
            )
            app.state.database.create_tables()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

        app.state.blob_store = blob_store if blob_store is not None else _build_blob_store()

        yield

        logger.info("Shutting down...")
        if owns_database:
            app.state.database.dispose()
            logger.info("Database connections closed")

    app = FastAPI(
        title=config.APP_NAME,
        description="Document repository with download accounting for the institutional portal",
        version=config.APP_VERSION,
        lifespan=lifespan
    )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(AccessLogMiddleware)
    setup_cors(app, config.CORS_ORIGINS)
    if config.ENVIRONMENT == "production":
        setup_trusted_hosts(app, config.TRUSTED_HOSTS)

    @app.exception_handler(RepositoryError)
    async def repository_error_handler(request: Request, exc: RepositoryError):
        status_code = next(
            (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
            500
        )
        if status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    app.include_router(profile_router)
    app.include_router(documents_router)
    app.include_router(students_router)
    app.include_router(downloads_router)

    @app.get("/health")
    async def health():
        """Liveness probe. Public endpoint."""
        return {
            "status": "ok",
            "version": config.APP_VERSION,
            "environment": config.ENVIRONMENT,
            "s3_enabled": getattr(app.state, "blob_store", None) is not None,
        }

    return app


app = create_app()
