from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded

from uwuweb.core.limits import limiter, rate_limit_handler
from uwuweb.core.init_db import init_database
from uwuweb.core.error_handlers import setup_exception_handlers
from uwuweb.core.database import db_manager
from uwuweb.core.middleware import setup_middleware
from uwuweb.core.logging_utils import (
    setup_logging,
    get_logger,
    log_business_event,
    error_tracker,
)
from uwuweb.core.config import (
    validate_config,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    DEBUG,
    LOG_LEVEL,
    LOG_FORMAT,
)

from uwuweb.roster.routers import auth
from uwuweb.attendance.routers import attendance
from uwuweb.attendance.routers import justifications

# Настройка системы логирования
setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""

    # Startup
    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    try:
        validate_config()
        logger.info("✅ Configuration validated")

        # Проверка соединения и создание таблиц (с повторными попытками)
        await init_database()
        logger.info("✅ Database initialized")

        log_business_event(
            "application_started",
            "system",
            0,
            {
                "version": APP_VERSION,
                "environment": "development" if DEBUG else "production",
            },
        )

        logger.info("🚀 Application startup completed")

    except Exception as e:
        logger.error(f"❌ Application startup failed: {str(e)}")
        error_tracker.track_error(
            "STARTUP_ERROR",
            str(e),
            {"component": "application_startup", "version": APP_VERSION},
        )
        raise

    yield

    # Shutdown
    logger.info("🛑 Shutting down application...")
    await db_manager.close_connections()
    logger.info("👋 Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    description="School attendance and absence justification service",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

setup_middleware(
    app,
    {
        "slow_request_threshold": 5.0,
        "exclude_paths": [
            "/health",
            "/docs",
            "/openapi.json",
            "/redoc",
            "/favicon.ico",
        ],
    },
)

# Add rate limiter to app state
app.state.limiter = limiter

# Add rate limit exception handler
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# Include routers with API version prefix
app.include_router(auth.router, prefix="/api/v1")
app.include_router(attendance.router, prefix="/api/v1")
app.include_router(justifications.router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Проверка состояния сервиса и соединения с БД"""
    try:
        await db_manager.check_connection()
        database = "connected"
    except Exception as e:
        logger.warning(f"Health check: database unavailable: {str(e)}")
        database = "unavailable"

    stats = error_tracker.get_stats()
    return {
        "status": "healthy" if database == "connected" else "degraded",
        "app": APP_NAME,
        "version": APP_VERSION,
        "database": database,
        # Счетчики ошибок процесса, без текстов сообщений
        "errors": {
            "total": stats["total_errors"],
            "by_type": stats["error_counts"],
        },
    }
