from __future__ import annotations

from .base import AbsoluteAngleSensor, DriveActuator, NeutralMode, SensorStatus, SteeringActuator


class SimSteeringActuator(SteeringActuator):
    """Steering motor that reaches every position target instantly.

    This is useful for running a module without hardware (CLI `--backend sim`)
    and for tests, which inspect `targets` to see what was commanded.
    """

    def __init__(self, position_ticks: float = 0.0):
        self.position_ticks = float(position_ticks)
        self.targets: list[float] = []
        self.relative_writes: list[float] = []
        self.inverted = False
        self.neutral_mode = NeutralMode.COAST

    def set_position_target(self, ticks: float) -> None:
        self.targets.append(float(ticks))
        self.position_ticks = float(ticks)

    def get_position(self) -> float:
        return self.position_ticks

    def set_relative_position(self, ticks: float) -> None:
        self.relative_writes.append(float(ticks))
        self.position_ticks = float(ticks)

    def set_inverted(self, inverted: bool) -> None:
        self.inverted = bool(inverted)

    def set_neutral_mode(self, mode: NeutralMode) -> None:
        self.neutral_mode = mode


class SimDriveActuator(DriveActuator):
    """Drive motor that reaches its velocity target instantly.

    Throttle is converted to velocity through `free_speed_ticks`, the velocity
    reached at full output. Call `advance(dt_s)` to integrate position.
    """

    def __init__(self, *, free_speed_ticks: float = 2000.0, interval_s: float = 0.1):
        self.free_speed_ticks = float(free_speed_ticks)
        self.interval_s = float(interval_s)
        self.velocity_ticks = 0.0
        self.position_ticks = 0.0
        self.last_feedforward_volts: float | None = None
        self.last_throttle: float | None = None
        self.inverted = False
        self.neutral_mode = NeutralMode.COAST

    def set_velocity_target(self, ticks_per_interval: float, feedforward_volts: float) -> None:
        self.velocity_ticks = float(ticks_per_interval)
        self.last_feedforward_volts = float(feedforward_volts)
        self.last_throttle = None

    def set_throttle(self, fraction: float) -> None:
        f = float(fraction)
        self.last_throttle = f
        self.last_feedforward_volts = None
        f = -1.0 if f < -1.0 else 1.0 if f > 1.0 else f
        self.velocity_ticks = f * self.free_speed_ticks

    def get_velocity(self) -> float:
        return self.velocity_ticks

    def get_position(self) -> float:
        return self.position_ticks

    def set_relative_position(self, ticks: float) -> None:
        self.position_ticks = float(ticks)

    def set_inverted(self, inverted: bool) -> None:
        self.inverted = bool(inverted)

    def set_neutral_mode(self, mode: NeutralMode) -> None:
        self.neutral_mode = mode

    def advance(self, dt_s: float) -> None:
        self.position_ticks += self.velocity_ticks * (float(dt_s) / self.interval_s)


class SimAbsoluteSensor(AbsoluteAngleSensor):
    """Absolute sensor that reports INVALID for the first `invalid_reads` reads."""

    def __init__(self, position_deg: float = 0.0, *, invalid_reads: int = 0):
        self.position_deg = float(position_deg)
        self.invalid_reads = int(invalid_reads)
        self.reads = 0

    def read_position(self) -> float:
        self.reads += 1
        return self.position_deg

    def read_status(self) -> SensorStatus:
        if self.reads <= self.invalid_reads:
            return SensorStatus.INVALID
        return SensorStatus.VALID
