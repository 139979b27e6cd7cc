import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from crm_reports.api.v1.endpoints.dashboard import router as dashboard_router
from crm_reports.api.v1.endpoints.reports import router as reports_router
from crm_reports.core.config import settings
from crm_reports.core.database import session_manager, aget_db
from crm_reports.core.rate_limiter import limiter
from crm_reports.services.S3Service import bucket_name_problem

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SERVICE_NAME = "CRM Reports API"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool on startup and release it on shutdown"""
    logger.info(f"🚀 Starting {SERVICE_NAME} ({settings.ENVIRONMENT})...")
    try:
        await session_manager.init()
    except Exception as e:
        logger.critical(f"🔥 Application startup failed: {str(e)}")
        raise
    logger.info("✅ Database connection pool ready")

    bucket_problem = bucket_name_problem(settings.REPORT_ATTACHMENTS_BUCKET)
    if bucket_problem:
        logger.warning(f"⚠️ {bucket_problem}; attachment uploads will fail")

    try:
        yield
    finally:
        logger.info("🔌 Closing database connections...")
        try:
            await session_manager.close()
        except Exception as e:
            logger.error(f"⚠️ Error during shutdown: {str(e)}")
            raise
        finally:
            logger.info("👋 Application shutdown complete")


app = FastAPI(
    title=SERVICE_NAME,
    description="Role-based report submission, moderation and dashboard aggregates",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"{request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(f"{request.method} {request.url.path} -> {response.status_code}")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # ctx may carry exception objects that JSONResponse cannot encode
    errors = [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]
    logger.error(f"Validation Error on {request.url.path}: {errors}")
    return JSONResponse(status_code=422, content={"detail": errors})


@app.get("/", tags=["Health Check"])
async def health_check(db: AsyncSession = Depends(aget_db)):
    status = {"service": SERVICE_NAME, "environment": settings.ENVIRONMENT}
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return {**status, "status": "unhealthy", "database": "disconnected", "error": str(e)}
    return {**status, "status": "healthy", "database": "connected"}


app.include_router(reports_router, prefix="/api/v1", tags=["Reports"])
app.include_router(dashboard_router, prefix="/api/v1", tags=["Dashboard"])
