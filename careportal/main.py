"""Main FastAPI application for the Care Portal messaging API."""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from careportal.config import API_VERSION, DAPR_ENABLED, LOG_LEVEL
from careportal.db.init import init_db, ping
from careportal.middleware.cors import add_cors_middleware
from careportal.middleware.request_logging import logging_middleware
from careportal.routers import admin_router, messages_router
from careportal.services.errors import MessagingError, ServerError
from careportal.services.events import EventBus
from careportal.utils.logger import setup_logging
from careportal.utils.metrics import metrics_collector

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and wire event forwarding on startup."""
    try:
        init_db()
        logger.info("[SUCCESS] Database tables initialized successfully.")
    except Exception as e:
        logger.warning(f"Database initialization failed: {str(e)}")
        logger.warning("Server will continue but database operations may fail.")

    unsubscribe = None
    if DAPR_ENABLED:
        from careportal.dapr.client import DaprEventPublisher
        unsubscribe = app.state.event_bus.subscribe(DaprEventPublisher())
        logger.info("Forwarding messaging events to Dapr pub/sub")

    logger.info("[SUCCESS] Application startup complete.")
    yield

    if unsubscribe:
        unsubscribe()


# Create FastAPI application
app = FastAPI(
    title="Care Portal Messaging API",
    description="Direct messaging between patients, clinicians, caregivers and admins",
    version=API_VERSION,
    lifespan=lifespan,
)
app.state.event_bus = EventBus()

# Add CORS middleware
add_cors_middleware(app)
app.middleware("http")(logging_middleware)


def error_response(error: MessagingError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if error.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.code, "detail": error.message},
        headers=headers,
    )


@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError):
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed or incomplete request bodies are client errors (400)."""
    fields = [".".join(str(part) for part in error["loc"][1:]) or "body" for error in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "INVALID_REQUEST", "detail": f"Invalid or missing fields: {', '.join(fields)}"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=True)
    return error_response(ServerError())


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": API_VERSION}


@app.get("/db/ping")
async def db_ping():
    """Database connectivity check."""
    try:
        ping()
    except Exception as e:
        logger.error(f"Database ping failed: {str(e)}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"db": "unreachable"})
    return {"db": "ok"}


@app.get("/metrics")
async def get_metrics():
    """In-process counters of this worker."""
    return metrics_collector.get_metrics()


app.include_router(messages_router, prefix="/api")  # /api/messages/...
app.include_router(admin_router, prefix="/api")  # /api/admin/...


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "careportal.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
