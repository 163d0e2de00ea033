import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import (
    activity,
    assignments,
    evaluations,
    health,
    logbook,
    reviews,
    sessions,
    supervisors,
)
from app.core.config import get_settings
from app.core.exceptions import AppError, WorkflowError
from app.core.middleware import RequestLoggingMiddleware, RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from app.db.bootstrap import ensure_runtime_schema_compatibility

settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_runtime_schema_compatibility()
    yield


async def app_error_handler(request: Request, exc: AppError):
    content = {"message": exc.message, "details": exc.details}
    if isinstance(exc, WorkflowError):
        content = {"error": exc.kind.value, **content}
    if exc.status_code >= 500:
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=content)


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    RequestSizeLimitMiddleware,
    max_bytes=settings.max_request_size_bytes,
    bulk_max_bytes=settings.bulk_request_size_bytes,
)
app.add_middleware(SecurityHeadersMiddleware, settings=settings)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(sessions.router, prefix=f"{settings.api_prefix}/sessions", tags=["sessions"])
app.include_router(assignments.router, prefix=f"{settings.api_prefix}/assignments", tags=["assignments"])
app.include_router(supervisors.router, prefix=f"{settings.api_prefix}/supervisors", tags=["supervisors"])
app.include_router(logbook.router, prefix=f"{settings.api_prefix}/logbook", tags=["logbook"])
app.include_router(reviews.router, prefix=f"{settings.api_prefix}/reviews", tags=["reviews"])
app.include_router(evaluations.router, prefix=f"{settings.api_prefix}/evaluations", tags=["evaluations"])
app.include_router(activity.router, prefix=settings.api_prefix, tags=["activity"])
