"""Swerve module - command one steerable, driven wheel of a robot chassis.

Core goals:
- Keep every steering move within 90 degrees by inverting the drive instead.
- Hold the steering still when the wheel is essentially stopped.
- Seed the steering motor's relative counter from an absolute sensor once at startup.

Hardware: abstract actuator/sensor interfaces, an in-memory simulation and
an ODrive-backed implementation.
"""

from __future__ import annotations

from .calibration import CalibrationResult, CalibrationSequencer
from .config import ModuleConfig, load_module_config
from .conversions import degrees_to_ticks, ticks_to_degrees
from .module import DesiredState, ModuleController, ModulePosition, ModuleState
from .optimizer import TurnPlan, normalize_degrees, optimize_turn

__all__ = [
    "__version__",
    "CalibrationResult",
    "CalibrationSequencer",
    "DesiredState",
    "ModuleConfig",
    "ModuleController",
    "ModulePosition",
    "ModuleState",
    "TurnPlan",
    "degrees_to_ticks",
    "load_module_config",
    "normalize_degrees",
    "optimize_turn",
    "ticks_to_degrees",
]

__version__ = "0.1.0"
