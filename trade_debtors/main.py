"""
Trade Debtors API
Main Application Entry Point
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import config
from .utils.constants import APP_NAME, APP_VERSION, ErrorCode
from .utils.errors import AppError
from .utils.logger import setup_logger, logger
from .views.json_view import JsonView
from .services.database_service import database_service
from .controllers.trade_debtor_controller import router as trade_debtor_router
from .controllers.health_controller import router as health_router


# Setup logging
setup_logger(
    level=config.logging.level,
    log_file=config.logging.file,
    max_size=config.logging.max_size,
    backup_count=config.logging.backup_count,
    console=config.logging.console,
    colorize=config.logging.colorize
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"{APP_NAME} starting...")
    await database_service.connect()
    logger.info(f"API running on http://{config.api.host}:{config.api.port}")
    yield
    await database_service.disconnect()
    logger.info(f"{APP_NAME} shutting down...")


# Create FastAPI application
app = FastAPI(
    title=APP_NAME,
    description="Trade debtor account management with document uploads",
    version=APP_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render application errors with their own status and code"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=JsonView.error(exc.error_code, exc.message, exc.details)
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed query or path parameters"""
    details = [{"loc": list(err.get("loc", [])), "msg": err.get("msg")} for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content=JsonView.error(ErrorCode.VALIDATION_ERROR, "Invalid request parameters", details)
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Last resort for errors nothing else handled"""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=JsonView.error(ErrorCode.INTERNAL_ERROR, "Internal server error")
    )


# Include routers
app.include_router(trade_debtor_router, prefix=config.api.prefix, tags=["Trade Debtors"])
app.include_router(health_router, prefix="/api/health", tags=["Health"])


@app.get("/")
async def root():
    """Service information"""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
        "docs": "/docs"
    }
