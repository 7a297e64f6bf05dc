# newsletter_access/api/deps.py
"""
FastAPI request-scope wiring for the access engine.

Each request gets its own PermissionCache, cleared when the request ends,
and an AccessEngine over the Motor stores. Engine errors map to HTTP
responses through access_error_to_http / register_exception_handlers.
"""

import logging
from typing import Annotated, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from newsletter_access.core.exceptions import (
    AccessControlError,
    DependencyFailure,
    PermissionDenied,
    ValidationError,
)
from newsletter_access.db.database import get_database
from newsletter_access.db.mongo_stores import MongoClassDirectory, MongoContentStore, MongoDirectoryStore
from newsletter_access.services.access_engine import AccessEngine
from newsletter_access.services.permission_cache import PermissionCache

logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying a failed aggregation
RETRY_AFTER_SECONDS = 5


async def get_db() -> AsyncIOMotorDatabase:
    """Database handle opened by connect_to_mongo at startup."""
    db = get_database()
    if db is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not available",
        )
    return db


async def get_permission_cache() -> AsyncIterator[PermissionCache]:
    """Fresh per-request cache; dropped when the request finishes."""
    cache = PermissionCache()
    try:
        yield cache
    finally:
        logger.debug(f"Request permission cache stats: {cache.cache_info()}")
        cache.clear()


async def get_access_engine(
    db: Annotated[AsyncIOMotorDatabase, Depends(get_db)],
    cache: Annotated[PermissionCache, Depends(get_permission_cache)],
) -> AccessEngine:
    return AccessEngine(
        directory=MongoDirectoryStore(db),
        content_store=MongoContentStore(db),
        class_directory=MongoClassDirectory(db),
        cache=cache,
    )


def access_error_to_http(exc: AccessControlError) -> HTTPException:
    if isinstance(exc, PermissionDenied):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.reason)
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=exc.reason)
    if isinstance(exc, DependencyFailure):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Could not load articles ({exc.step.value}), please retry",
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    logger.error(f"Unmapped access engine error: {exc}", exc_info=True)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Access check failed")


async def _access_error_handler(request: Request, exc: AccessControlError) -> JSONResponse:
    http_exc = access_error_to_http(exc)
    return JSONResponse(
        status_code=http_exc.status_code,
        content={"detail": http_exc.detail},
        headers=http_exc.headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessControlError, _access_error_handler)
