"""
LuxeStay pricing API

FastAPI application: voucher management, host coupons and booking checkout
pricing (membership and voucher discounts).
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from luxestay.config import settings
from luxestay.models.base import init_db, close_db
from luxestay.utils.logging import setup_logging, get_logger
from luxestay.utils.exceptions import AppException

from luxestay.api.vouchers import (
    admin_router as admin_vouchers_router,
    host_router as host_coupons_router,
    router as vouchers_router,
)
from luxestay.api.bookings import router as bookings_router

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle

    Local SQLite databases get their tables created on startup; other
    databases are managed by migrations.
    """
    logger.info("Starting LuxeStay pricing service", extra={"env": settings.ENV})

    if settings.is_development and settings.uses_sqlite:
        await init_db()

    yield

    logger.info("Shutting down LuxeStay pricing service")
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="""
## LuxeStay pricing

Voucher and membership discount resolution for bookings.

- **Vouchers**: admin vouchers, host coupons, loyalty exchange vouchers
- **Checkout**: apply/remove a code, preview, confirm, cancel
- **Membership**: active plan discount applied to every quote
    """,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Application exceptions"""
    logger.warning(
        f"AppException: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.error_code,
                "message": exc.message,
                "details": exc.details,
            }
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Last-resort handler"""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "Internal server error. Please try again later.",
                "details": {},
            }
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check (load balancer)"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


app.include_router(admin_vouchers_router)
app.include_router(host_coupons_router)
app.include_router(vouchers_router)
app.include_router(bookings_router)


if __name__ == "__main__":
    uvicorn.run(
        "luxestay.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )
