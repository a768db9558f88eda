import logging
import os
import time
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError, TimeoutError as SA_TimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  registers tables on Base.metadata
from .api import api_payment, api_receipts
from .core.config import settings
from .core.observability import setup_logging, setup_tracer
from .database import Base, SessionLocal, engine

setup_logging()
logger = logging.getLogger(__name__)

_BOOT_TS = time.time()

_bootstrap_started_at = datetime.utcnow()
_skip_db_bootstrap = os.getenv("SKIP_DB_BOOTSTRAP", "").strip().lower() in {"1", "true", "yes"}
if _skip_db_bootstrap:
    logger.info("startup.bootstrap.skipped")
else:
    Base.metadata.create_all(bind=engine)
logger.info(
    "startup.bootstrap.end duration_ms=%s skip_db_bootstrap=%s pid=%s",
    int((datetime.utcnow() - _bootstrap_started_at).total_seconds() * 1000),
    int(_skip_db_bootstrap),
    os.getpid(),
)

# Always use ORJSONResponse for JSON payloads to ensure consistent, fast
# serialization across all endpoints.
app = FastAPI(title="GOSA Payment Reconciliation API", default_response_class=ORJSONResponse)
setup_tracer(app)


@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    """Return JSON responses for errors that escape the routes and log them."""
    try:
        response = await call_next(request)
    except StarletteHTTPException as exc:
        logger.error(
            "HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail
        )
        response = ORJSONResponse(
            status_code=exc.status_code, content={"detail": exc.detail}
        )
    except SA_TimeoutError as exc:  # DB pool timeout -> 503 to reduce retry storms
        logger.error("DB timeout at %s: %s", request.url.path, str(exc))
        response = ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"message": "Database busy, please retry", "success": False},
        )
    except Exception as exc:
        logger.exception("Unhandled error: %s", exc)
        response = ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal Server Error", "success": False},
        )
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors with details and log them for debugging."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


@app.get("/healthz/live", tags=["health"])
async def health_live():
    """Liveness probe: process can respond; does not touch the DB."""
    return {
        "status": "ok",
        "kind": "live",
        "uptime_s": round(time.time() - _BOOT_TS, 1),
        "pid": os.getpid(),
    }


@app.get("/healthz/ready", tags=["health"])
def health_ready():
    """Readiness probe: a round trip to the database."""
    t0 = time.perf_counter()
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Readiness DB ping failed: %s", exc)
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "kind": "ready", "ready": False, "reason": "db"},
            headers={"Cache-Control": "no-store"},
        )
    finally:
        db.close()
    return ORJSONResponse(
        content={
            "status": "ok",
            "kind": "ready",
            "ready": True,
            "db_ping_ms": round((time.perf_counter() - t0) * 1000.0, 1),
        },
        headers={"Cache-Control": "no-store"},
    )


api_prefix = settings.API_V1_STR  # usually "/api/v1"

app.include_router(api_payment.router, prefix=f"{api_prefix}/payments")
app.include_router(api_payment.legacy_router)
app.include_router(api_receipts.router, prefix=f"{api_prefix}")
