from src.models.device import Device

__all__ = [
    "Device",
]
