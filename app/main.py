import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from app.api.v1.api_router import api_router
from app.core.config import settings
from app.core.database import Database
from app.core.exceptions import PaymentAppError
from app.core.logging import setup_logging
from app.core.startup import ensure_sample_customers, ensure_tables

# Create FastAPI app
app = FastAPI(
    title="Payment Collection API",
    description="Backend API for loan payment collection: customers, payments and installment schedules",
    version="1.0.0",
    openapi_url=f"/openapi.json",
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def log_requests(request: Request, call_next):
    """Log method, path, status and duration of every request."""
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s -> %s (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


app.add_middleware(BaseHTTPMiddleware, dispatch=log_requests)

app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    """Application startup event."""
    setup_logging(settings.LOG_LEVEL)
    database = Database.from_settings()
    app.state.database = database
    if settings.AUTO_CREATE_TABLES:
        await ensure_tables(database)
    if settings.SEED_SAMPLE_DATA:
        await ensure_sample_customers(database)
    logger.info("Payment Collection API started (environment=%s)", settings.ENVIRONMENT)


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    database = getattr(app.state, "database", None)
    if database is not None:
        await database.dispose()


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"message": "Internal server error"})


@app.exception_handler(PaymentAppError)
async def payment_app_exception_handler(request: Request, exc: PaymentAppError):
    if exc.status_code >= 500:
        logger.error("Payment error 500: method=%s path=%s error=%s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"message": "Payment could not be processed"})
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc)})


@app.exception_handler(ValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "message": "Validation error",
            "errors": _serializable_validation_errors(exc.errors()),
        },
    )

# Exception handlers
@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

def _serializable_validation_errors(errors: list) -> list:
    """Convert validation error dicts to JSON-serializable form (e.g. ctx may contain Exception)."""
    out = []
    for e in errors:
        item = {"type": e.get("type"), "loc": e.get("loc"), "msg": e.get("msg")}
        if "ctx" in e and e["ctx"]:
            item["ctx"] = {k: str(v) for k, v in e["ctx"].items()}
        out.append(item)
    return out


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors_serializable = _serializable_validation_errors(exc.errors())
    logger.info(
        "Validation error 422: method=%s path=%s errors=%s",
        request.method,
        request.url.path,
        errors_serializable,
    )
    return JSONResponse(
        status_code=422,
        content={
            "message": "Validation error",
            "errors": errors_serializable,
        },
    )
