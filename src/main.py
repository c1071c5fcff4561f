import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass

from apscheduler.schedulers.base import BaseScheduler
from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from src.api.router import api_router
from src.config import get_settings
from src.db.database import get_sync_session, init_db
from src.devices.registry import DeviceRegistry
from src.feeds.exchange_rate import ExchangeRateService
from src.feeds.okx import OkxTickerFeed
from src.notifications.dispatcher import PushDispatcher
from src.notifications.expo import ExpoPushClient
from src.scheduler.registry import JobRegistry
from src.scheduler.runner import start_scheduler
from src.updaters.exchange_rate import ExchangeRateUpdater
from src.updaters.price_monitor import BtcPriceMonitor

settings = get_settings()

logger.remove()
logger.add(sys.stderr, level="DEBUG" if settings.debug else "INFO")


@dataclass
class Services:
    scheduler: BaseScheduler
    dispatcher: PushDispatcher
    device_registry: DeviceRegistry
    job_registry: JobRegistry
    exchange_rates: ExchangeRateService
    exchange_rate_updater: ExchangeRateUpdater
    btc_price_monitor: BtcPriceMonitor


def build_services(scheduler: BaseScheduler) -> Services:
    """Construct the long-lived components once and wire them together."""
    dispatcher = PushDispatcher(ExpoPushClient())
    device_registry = DeviceRegistry(get_sync_session)
    job_registry = JobRegistry(scheduler, dispatcher)
    exchange_rates = ExchangeRateService()
    return Services(
        scheduler=scheduler,
        dispatcher=dispatcher,
        device_registry=device_registry,
        job_registry=job_registry,
        exchange_rates=exchange_rates,
        exchange_rate_updater=ExchangeRateUpdater(job_registry, device_registry, exchange_rates),
        btc_price_monitor=BtcPriceMonitor(
            job_registry, device_registry, dispatcher, OkxTickerFeed(), scheduler
        ),
    )


def start_updaters(services: Services) -> None:
    for name, updater in (
        ("Exchange rate update service", services.exchange_rate_updater),
        ("BTC price monitor service", services.btc_price_monitor),
    ):
        try:
            if updater.start():
                logger.info(f"{name} started")
        except Exception as e:
            logger.error(f"Failed to start {name}: {e}")


def close_services(services: Services) -> None:
    """Stop the updaters, then release the HTTP clients the services own."""
    services.btc_price_monitor.stop()
    services.exchange_rate_updater.stop()
    services.scheduler.shutdown()
    services.dispatcher.gateway.close()
    services.exchange_rates.close()
    services.btc_price_monitor.ticker.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up...")
    init_db()

    # 啟動排程器並建立服務
    scheduler = start_scheduler()
    services = build_services(scheduler)
    for field_name, component in vars(services).items():
        setattr(app.state, field_name, component)
    start_updaters(services)

    yield

    # 關閉排程器與連線
    close_services(services)
    logger.info("Shutting down...")


# Disable interactive docs in production
docs_url = None if settings.is_production else "/docs"
redoc_url = None if settings.is_production else "/redoc"

app = FastAPI(
    title="Push Scheduler API",
    description="Scheduled Expo push notifications for exchange rates and BTC prices",
    version="0.1.0",
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
)

# Configure CORS origins
default_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
if settings.cors_origins:
    cors_origins = [origin.strip() for origin in settings.cors_origins.split(",")]
else:
    cors_origins = default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/api/admin/status")
async def admin_status(x_admin_key: str = Header(None)):
    # Require admin key in production
    if settings.is_production:
        if not settings.admin_api_key:
            raise HTTPException(status_code=503, detail="Admin API not configured")
        if x_admin_key != settings.admin_api_key:
            raise HTTPException(status_code=401, detail="Invalid admin key")

    scheduler = getattr(app.state, "scheduler", None)
    dispatcher = getattr(app.state, "dispatcher", None)
    job_registry = getattr(app.state, "job_registry", None)

    jobs = []
    if scheduler is not None:
        for job in scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run": str(next_run) if next_run else None,
                }
            )

    return {
        "scheduler_running": scheduler is not None and scheduler.running,
        "push_gateway": dispatcher.state.value if dispatcher is not None else None,
        "jobs": jobs,
        "notifications": job_registry.names() if job_registry is not None else [],
    }
