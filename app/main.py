# app/main.py

import logging
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Конфигурация и ядро
from app.core.config import settings as config
from app.core.errors import UnrecognizedEventStatus
from app.core.limiter import limiter
from app.core.locales import error_message
from app.core.logging_config import setup_logging
from app.core.redis import acquire_scheduler_lock, release_scheduler_lock
from app.clients.payment_providers import build_registry

# Роутеры FastAPI
from app.routers.v1.api import api_router
from app.routers.webhooks import payments_router

# Фоновые задачи
from app.services.subscription_credits import grant_monthly_subscription_credits_task

# --- Инициализация ---
logger = logging.getLogger(__name__)
scheduler = AsyncIOScheduler()

# --- Обработчики ошибок ---
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Глобальный обработчик для всех необработанных исключений.
    Транзакция к этому моменту уже откатана сервисом.
    """
    logger.critical(f"Unhandled exception for request: {request.method} {request.url}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error."},
    )

async def unrecognized_event_status_handler(request: Request, exc: UnrecognizedEventStatus):
    # Уже залогировано процессором с уровнем CRITICAL
    return JSONResponse(
        status_code=422,
        content={"detail": {"error": exc.kind.value, "message": error_message(exc.kind)}},
    )

# --- Lifespan Manager (запуск и остановка приложения) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Application lifespan startup...")

    # Реестр провайдеров нужен каждому воркеру
    app.state.payment_providers = build_registry(config)
    logger.info(f"Payment providers enabled: {app.state.payment_providers.names()}")

    # Надежная блокировка через Redis: планировщик запускается только в одном воркере
    is_main_worker = await acquire_scheduler_lock()

    if is_main_worker:
        logger.info("This is the main worker. Starting scheduler...")
        if not scheduler.running:
            scheduler.add_job(grant_monthly_subscription_credits_task, 'cron', hour=0, minute=10, timezone=config.SCHEDULER_TIMEZONE)
            scheduler.start()
            logger.info("Scheduler started with background jobs.")
    else:
        logger.info("This is a secondary worker. Skipping scheduler setup.")

    yield

    # Код при остановке
    if is_main_worker:
        logger.info("Main worker shutting down...")
        if scheduler.running:
            scheduler.shutdown()
            logger.info("Scheduler shut down.")
        await release_scheduler_lock()
    else:
        logger.info("Secondary worker shutting down.")

# --- Создание FastAPI приложения ---
app = FastAPI(
    title="Entitlement Ledger Service",
    description="Credits, redemption codes, subscriptions and affiliate commissions",
    version="0.1.0",
    lifespan=lifespan
)

app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Регистрация обработчиков исключений ---
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(UnrecognizedEventStatus, unrecognized_event_status_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Подключение роутеров FastAPI ---
app.include_router(api_router, prefix="/api")

# Веб-хуки платежных провайдеров
app.include_router(payments_router, prefix="/internal/webhooks", tags=["Internal Webhooks"])
