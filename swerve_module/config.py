from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .hardware.base import NeutralMode


@dataclass(frozen=True)
class GearingConfig:
    """Mechanical constants that map motor ticks to wheel units.

    Defaults match an SDS MK4 (L2) module driven by Falcon 500s.
    """

    # Motor turns per steering turn.
    steering_ratio: float = 150.0 / 7.0
    # Motor turns per wheel turn.
    drive_ratio: float = 6.75
    wheel_circumference_m: float = 0.1016 * math.pi

    # Motor sensor resolution and the window velocity is reported over.
    ticks_per_rev: float = 2048.0
    velocity_interval_s: float = 0.1


@dataclass(frozen=True)
class FeedforwardGains:
    """Drive feedforward, in volts per unit (kS: V, kV: V per m/s, kA: V per m/s^2)."""

    ks: float = 0.32 / 12.0
    kv: float = 1.51 / 12.0
    ka: float = 0.27 / 12.0

    def calculate(self, velocity: float, acceleration: float = 0.0) -> float:
        v = float(velocity)
        sign = -1.0 if v < 0 else (1.0 if v > 0 else 0.0)
        return self.ks * sign + self.kv * v + self.ka * float(acceleration)


@dataclass(frozen=True)
class MotorConfig:
    inverted: bool = False
    neutral_mode: NeutralMode = NeutralMode.COAST


@dataclass(frozen=True)
class CalibrationConfig:
    """Startup calibration policy."""

    max_attempts: int = 100
    poll_interval_s: float = 0.010
    # Delay after configuring the steering motor, before the first sensor read.
    settle_s: float = 0.1
    # Raise CalibrationError instead of degrading when the sensor never became valid.
    strict: bool = False


@dataclass(frozen=True)
class HardwareIds:
    """Device identifiers. For the ODrive backend these are axis indexes.

    The sensor is a separate absolute encoder on the steering output. On the
    ODrive backend it shares an index with a motor only when it sits on
    another board.
    """

    steering: int = 0
    drive: int = 1
    sensor: int = 0


@dataclass(frozen=True)
class ModuleConfig:
    gearing: GearingConfig = GearingConfig()
    feedforward: FeedforwardGains = FeedforwardGains()
    steering_motor: MotorConfig = MotorConfig(inverted=False, neutral_mode=NeutralMode.COAST)
    drive_motor: MotorConfig = MotorConfig(inverted=False, neutral_mode=NeutralMode.BRAKE)
    calibration: CalibrationConfig = CalibrationConfig()
    ids: HardwareIds = HardwareIds()

    # Absolute sensor reading (degrees) when the wheel points forward.
    angle_offset_deg: float = 0.0
    max_speed_mps: float = 4.5

    def with_offset(self, offset_deg: float) -> ModuleConfig:
        return replace(self, angle_offset_deg=float(offset_deg))

    def validate(self) -> None:
        """Fail fast on values that would divide by zero or never calibrate."""

        g = self.gearing
        positive = {
            "gearing.steering_ratio": g.steering_ratio,
            "gearing.drive_ratio": g.drive_ratio,
            "gearing.wheel_circumference_m": g.wheel_circumference_m,
            "gearing.ticks_per_rev": g.ticks_per_rev,
            "gearing.velocity_interval_s": g.velocity_interval_s,
            "max_speed_mps": self.max_speed_mps,
            "calibration.max_attempts": self.calibration.max_attempts,
        }
        for name, value in positive.items():
            try:
                v = float(value)
            except (TypeError, ValueError):
                raise ConfigError(f"{name} must be a number (got {value!r})") from None
            if not math.isfinite(v) or v <= 0.0:
                raise ConfigError(f"{name} must be a positive number (got {value!r})")

        if float(self.calibration.poll_interval_s) < 0.0:
            raise ConfigError("calibration.poll_interval_s must not be negative")
        if float(self.calibration.settle_s) < 0.0:
            raise ConfigError("calibration.settle_s must not be negative")
        if not math.isfinite(float(self.angle_offset_deg)):
            raise ConfigError("angle_offset_deg must be finite")


@dataclass(frozen=True)
class ODriveConfig:
    """ODrive board settings for the ODrive hardware backend.

    Includes safety limits (current/velocity) and the scaling used for the
    commands ODrive has no native unit for.
    """

    current_limit_a: float = 20.0
    calibration_current_a: float = 6.0
    vel_limit_turn_s: float = 100.0

    # Torque commanded at full open-loop throttle.
    max_torque_nm: float = 1.5
    # Drive feedforward volts -> input_torque.
    torque_per_volt_nm: float = 0.05

    # Run the motor + encoder calibration sequence on both axes at startup.
    run_motor_calibration: bool = False
    motor_calibration_timeout_s: float = 60.0
    # Settle time after requesting CLOSED_LOOP_CONTROL.
    closed_loop_settle_s: float = 0.8


_SECTIONS = {
    "gearing": GearingConfig,
    "feedforward": FeedforwardGains,
    "steering_motor": MotorConfig,
    "drive_motor": MotorConfig,
    "calibration": CalibrationConfig,
    "ids": HardwareIds,
}


def _build_section(name: str, cls: type, data: Any) -> Any:
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{name}' must be an object")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}': {', '.join(unknown)}")
    values = dict(data)
    if "neutral_mode" in values:
        try:
            values["neutral_mode"] = NeutralMode(str(values["neutral_mode"]).lower())
        except ValueError as exc:
            raise ConfigError(f"Bad neutral_mode in '{name}': {values['neutral_mode']!r}") from exc
    return cls(**values)


def module_config_from_dict(data: dict[str, Any]) -> ModuleConfig:
    known = {f.name for f in fields(ModuleConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key in _SECTIONS:
            kwargs[key] = _build_section(key, _SECTIONS[key], value)
        else:
            kwargs[key] = value

    try:
        cfg = ModuleConfig(**kwargs)
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc
    cfg.validate()
    return cfg


def module_config_to_dict(cfg: ModuleConfig) -> dict[str, Any]:
    data = asdict(cfg)
    for key in ("steering_motor", "drive_motor"):
        data[key]["neutral_mode"] = getattr(cfg, key).neutral_mode.value
    return data


def load_module_config(path: str) -> ModuleConfig:
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Cannot read module config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Module config {path} must be a JSON object")
    return module_config_from_dict(data)


def save_module_config(path: str, cfg: ModuleConfig) -> None:
    p = Path(path)
    payload = module_config_to_dict(cfg)
    p.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
