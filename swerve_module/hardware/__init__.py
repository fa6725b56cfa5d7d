from __future__ import annotations

from .base import AbsoluteAngleSensor, DriveActuator, NeutralMode, SensorStatus, SteeringActuator

__all__ = [
    "AbsoluteAngleSensor",
    "DriveActuator",
    "NeutralMode",
    "SensorStatus",
    "SteeringActuator",
]
