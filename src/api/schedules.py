from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.api.deps import (
    get_device_registry,
    get_dispatcher,
    get_exchange_rates,
    get_job_registry,
)
from src.devices.registry import DeviceRegistry, DeviceValidationError
from src.feeds.exchange_rate import ExchangeRateService
from src.notifications.base import PushTicket
from src.notifications.dispatcher import PushDispatcher
from src.notifications.formatter import format_rate_message
from src.scheduler.errors import DuplicateJobError, JobValidationError
from src.scheduler.registry import JobRegistry, ScheduledNotification

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class DailyScheduleRequest(BaseModel):
    name: str = Field(min_length=1)
    hour: int = Field(ge=0, le=23)
    minute: int = Field(ge=0, le=59)
    push_tokens: List[str] = Field(min_length=1, alias="pushTokens")
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    data: Dict[str, Any] = {}

    model_config = {"populate_by_name": True}


class CustomScheduleRequest(BaseModel):
    name: str = Field(min_length=1)
    cron_expression: str = Field(min_length=1, alias="cronExpression")
    push_tokens: List[str] = Field(min_length=1, alias="pushTokens")
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    data: Dict[str, Any] = {}

    model_config = {"populate_by_name": True}


class ExchangeRateScheduleRequest(BaseModel):
    name: str = Field(min_length=1)
    cron_expression: str = Field(min_length=1, alias="cronExpression")

    model_config = {"populate_by_name": True}


class SendRequest(BaseModel):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    data: Dict[str, Any] = {}
    tokens: Optional[List[str]] = None
    platform: Optional[str] = None


class ReceiptsRequest(BaseModel):
    ids: List[str] = Field(min_length=1)


def _http_error(e: JobValidationError) -> HTTPException:
    status_code = 409 if isinstance(e, DuplicateJobError) else 400
    return HTTPException(status_code=status_code, detail=str(e))


def _next_invocation(job: ScheduledNotification) -> Optional[str]:
    next_run = job.next_invocation()
    return next_run.isoformat() if next_run else None


@router.post("/schedule/daily")
def schedule_daily(body: DailyScheduleRequest, registry: JobRegistry = Depends(get_job_registry)):
    try:
        job = registry.schedule_fixed_time(
            body.name, body.hour, body.minute, body.push_tokens, body.title, body.body, body.data
        )
    except JobValidationError as e:
        raise _http_error(e) from e

    return {
        "message": "Daily notification scheduled successfully",
        "nextInvocation": _next_invocation(job),
    }


@router.post("/schedule/custom")
def schedule_custom(
    body: CustomScheduleRequest, registry: JobRegistry = Depends(get_job_registry)
):
    try:
        job = registry.schedule_recurring(
            body.name,
            body.cron_expression,
            body.push_tokens,
            body.title,
            body.body,
            body.data,
        )
    except JobValidationError as e:
        raise _http_error(e) from e

    return {
        "message": "Custom notification scheduled successfully",
        "nextInvocation": _next_invocation(job),
    }


@router.post("/schedule/exchange-rate")
def schedule_exchange_rate(
    body: ExchangeRateScheduleRequest,
    registry: JobRegistry = Depends(get_job_registry),
    devices: DeviceRegistry = Depends(get_device_registry),
    rates: ExchangeRateService = Depends(get_exchange_rates),
):
    result = rates.get_exchange_rates()
    if not result.success:
        raise HTTPException(status_code=502, detail="Failed to fetch exchange rates")

    tokens = devices.get_active_tokens()
    if not tokens:
        raise HTTPException(status_code=400, detail="No registered devices found")

    try:
        job = registry.schedule_recurring(
            body.name,
            body.cron_expression,
            tokens,
            "汇率更新提醒",
            format_rate_message(result.rates),
            {"type": "exchange-rate-update", "timestamp": result.timestamp},
        )
    except JobValidationError as e:
        raise _http_error(e) from e

    return {
        "message": "Exchange rate notification scheduled successfully",
        "nextInvocation": _next_invocation(job),
        "deviceCount": len(tokens),
    }


@router.delete("/schedule/{name}")
def cancel_schedule(name: str, registry: JobRegistry = Depends(get_job_registry)):
    if not registry.cancel(name):
        raise HTTPException(
            status_code=404, detail=f"No scheduled notification found with name '{name}'"
        )
    return {"message": f"Scheduled notification '{name}' cancelled successfully"}


@router.get("/schedule")
def list_schedules(registry: JobRegistry = Depends(get_job_registry)):
    return {
        name: {
            "name": info["name"],
            "nextInvocation": info["next_invocation"].isoformat()
            if info["next_invocation"]
            else None,
        }
        for name, info in registry.list_active().items()
    }


@router.post("/send")
def send_now(
    body: SendRequest,
    dispatcher: PushDispatcher = Depends(get_dispatcher),
    devices: DeviceRegistry = Depends(get_device_registry),
):
    if body.tokens:
        tokens = body.tokens
    elif body.platform:
        try:
            tokens = devices.get_active_tokens_by_platform(body.platform)
        except DeviceValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
    else:
        tokens = devices.get_active_tokens()

    tickets = dispatcher.send_to_tokens(tokens, body.title, body.body, body.data)
    return {
        "sent": len([ticket for ticket in tickets if ticket.is_ok]),
        "tickets": [
            {"status": t.status, "id": t.id, "message": t.message, "error": t.error}
            for t in tickets
        ],
    }


@router.post("/receipts")
def get_receipts(body: ReceiptsRequest, dispatcher: PushDispatcher = Depends(get_dispatcher)):
    receipts = dispatcher.fetch_receipts([PushTicket(status="ok", id=i) for i in body.ids])
    return {
        receipt.id: {"status": receipt.status, "message": receipt.message, "error": receipt.error}
        for receipt in receipts
    }
