from fastapi import HTTPException, Request

from src.devices.registry import DeviceRegistry
from src.feeds.exchange_rate import ExchangeRateService
from src.notifications.dispatcher import PushDispatcher
from src.scheduler.registry import JobRegistry
from src.updaters.exchange_rate import ExchangeRateUpdater


def _component(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(status_code=503, detail=f"{name} is not available")
    return component


def get_job_registry(request: Request) -> JobRegistry:
    return _component(request, "job_registry")


def get_dispatcher(request: Request) -> PushDispatcher:
    return _component(request, "dispatcher")


def get_device_registry(request: Request) -> DeviceRegistry:
    return _component(request, "device_registry")


def get_exchange_rates(request: Request) -> ExchangeRateService:
    return _component(request, "exchange_rates")


def get_exchange_rate_updater(request: Request) -> ExchangeRateUpdater:
    return _component(request, "exchange_rate_updater")
