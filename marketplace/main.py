from fastapi import FastAPI, Depends, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.config import settings
from marketplace.database import init_db, close_db, get_db
from marketplace.exceptions import MarketplaceError
from marketplace.logging_config import setup_logging
from marketplace.middleware.correlation import CorrelationIdMiddleware

# Import models so they are registered with Base.metadata
import marketplace.models  # noqa: F401

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("starting_marketplace", env=settings.ENVIRONMENT)
    await init_db()
    yield
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Global exception handlers: normalize all errors to
# {"error": {"code": "...", "message": "...", "details": {...}}}
# ---------------------------------------------------------------------------

@app.exception_handler(MarketplaceError)
async def marketplace_exception_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    logger.info(
        "request_rejected",
        error_code=exc.code,
        status_code=exc.http_status,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=jsonable_encoder({"error": exc.to_dict()}),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, str):
        detail = {"error": {"code": "HTTP_ERROR", "message": detail}}
    elif isinstance(detail, dict) and "error" not in detail:
        detail = {"error": detail}
    return JSONResponse(status_code=exc.status_code, content=detail, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_encoder(exc.errors()),
            }
        },
    )


app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Request-ID"],
)


@app.get("/health", tags=["System"])
async def health(response: Response, db: AsyncSession = Depends(get_db)):
    health_status = {"status": "healthy", "version": settings.APP_VERSION, "checks": {}}

    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["db"] = "ok"
    except SQLAlchemyError as e:
        logger.error("health_check_db_failed", error=str(e))
        health_status["checks"]["db"] = "error"
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return health_status


# --- Routers ---
from marketplace.routes.users import router as users_router  # noqa: E402
from marketplace.routes.suppliers import router as suppliers_router  # noqa: E402
from marketplace.routes.rfqs import router as rfqs_router  # noqa: E402
from marketplace.routes.quotations import router as quotations_router  # noqa: E402
from marketplace.routes.orders import router as orders_router  # noqa: E402
from marketplace.routes.samples import router as samples_router  # noqa: E402
from marketplace.routes.questions import router as questions_router  # noqa: E402
from marketplace.routes.analytics import router as analytics_router  # noqa: E402
from marketplace.routes.audit_logs import router as audit_logs_router  # noqa: E402
from marketplace.jobs.scheduled import router as jobs_router  # noqa: E402

app.include_router(users_router, prefix="/api/v1/users", tags=["Users"])
app.include_router(suppliers_router, prefix="/api/v1/suppliers", tags=["Suppliers"])
app.include_router(rfqs_router, prefix="/api/v1/rfqs", tags=["RFQs"])
app.include_router(quotations_router, prefix="/api/v1/quotations", tags=["Quotations"])
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(samples_router, prefix="/api/v1/sample-requests", tags=["Sample Requests"])
app.include_router(questions_router, prefix="/api/v1/questions", tags=["RFQ Questions"])
app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])
app.include_router(audit_logs_router, prefix="/api/v1/audit-logs", tags=["Audit Logs"])
app.include_router(jobs_router, prefix="/internal/jobs", tags=["Internal Jobs"])
