from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel

from src.api.deps import get_device_registry, get_dispatcher, get_exchange_rate_updater
from src.devices.registry import DeviceRegistry, DeviceValidationError
from src.notifications.dispatcher import PushDispatcher
from src.notifications.tokens import is_valid_token
from src.updaters.exchange_rate import ExchangeRateUpdater

router = APIRouter(prefix="/api", tags=["devices"])


class RegisterDeviceRequest(BaseModel):
    token: str
    platform: str
    device_name: Optional[str] = None
    device_info: Dict[str, Any] = {}


def restart_updater(updater: ExchangeRateUpdater) -> None:
    try:
        updater.restart()
    except Exception as e:
        logger.error(f"Failed to restart exchange rate updater: {e}")


@router.post("/register-push-token")
def register_push_token(
    body: RegisterDeviceRequest,
    background_tasks: BackgroundTasks,
    devices: DeviceRegistry = Depends(get_device_registry),
    dispatcher: PushDispatcher = Depends(get_dispatcher),
    updater: ExchangeRateUpdater = Depends(get_exchange_rate_updater),
):
    if not is_valid_token(body.token):
        raise HTTPException(status_code=400, detail="Invalid push token format")

    try:
        device = devices.register_device(
            body.token,
            body.platform,
            body.device_name or f"{body.platform} device",
            body.device_info,
        )
    except DeviceValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    dispatcher.send_to_device(
        device.token, "注册成功", "您已成功注册推送服务", {"type": "registration"}
    )

    # 新裝置加入後重新建立匯率推播，讓收件清單包含它
    background_tasks.add_task(restart_updater, updater)

    return {"success": True, "message": "Push token registered successfully"}


@router.get("/devices")
def list_devices(devices: DeviceRegistry = Depends(get_device_registry)):
    return {"items": [device.to_dict() for device in devices.get_all_devices()]}


@router.delete("/devices/{token}", status_code=204)
def remove_device(token: str, devices: DeviceRegistry = Depends(get_device_registry)):
    if not devices.remove_device(token):
        raise HTTPException(status_code=404, detail="Device not found")
