from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .calibration import CalibrationResult, CalibrationSequencer
from .config import ModuleConfig
from .conversions import (
    degrees_to_ticks,
    mps_to_ticks_per_interval,
    ticks_per_interval_to_mps,
    ticks_to_degrees,
    ticks_to_meters,
)
from .errors import ModuleNotReadyError
from .hardware.base import AbsoluteAngleSensor, DriveActuator, SteeringActuator
from .optimizer import normalize_degrees, offset_difference, optimize_turn

# Below this fraction of max speed the steering holds its last heading.
JITTER_SPEED_FRACTION = 0.01


@dataclass(frozen=True)
class DesiredState:
    speed_mps: float
    angle_deg: float


@dataclass(frozen=True)
class ModuleState:
    """Measured wheel speed and heading.

    counter_deg is the raw steering counter angle and may exceed one revolution;
    heading_deg is the same angle normalized to [0, 360).
    """

    speed_mps: float
    counter_deg: float

    @property
    def heading_deg(self) -> float:
        return normalize_degrees(self.counter_deg)


@dataclass(frozen=True)
class ModulePosition:
    distance_m: float
    counter_deg: float

    @property
    def heading_deg(self) -> float:
        return normalize_degrees(self.counter_deg)


class ModuleMode(Enum):
    UNCALIBRATED = "uncalibrated"
    READY = "ready"


class ModuleController:
    """One swerve module: a steering motor, a drive motor and an absolute sensor.

    - Applies motor settings and calibrates steering on construction.
    - Turns each desired state into steering and drive commands.

    Not thread-safe; call from a single periodic control loop.
    """

    def __init__(
        self,
        module_number: int,
        config: ModuleConfig,
        *,
        steering: SteeringActuator,
        drive: DriveActuator,
        sensor: AbsoluteAngleSensor,
        calibrate: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        verbose: bool = False,
    ):
        self.module_number = int(module_number)
        self.cfg = config
        self._steering = steering
        self._drive = drive
        self._sensor = sensor
        self._sleep = sleep
        self._clock = clock
        self._verbose = verbose

        self.mode = ModuleMode.UNCALIBRATED
        self._last_angle_deg = 0.0

        self._configure_steering()
        self._configure_drive()

        if calibrate:
            self._sleep(float(config.calibration.settle_s))
            self.reset_to_absolute()

    def _log(self, msg: str) -> None:
        if self._verbose:
            print(f"[module {self.module_number}] {msg}")

    def _configure_steering(self) -> None:
        m = self.cfg.steering_motor
        self._steering.set_inverted(bool(m.inverted))
        self._steering.set_neutral_mode(m.neutral_mode)

    def _configure_drive(self) -> None:
        m = self.cfg.drive_motor
        self._drive.set_inverted(bool(m.inverted))
        self._drive.set_neutral_mode(m.neutral_mode)
        self._drive.set_relative_position(0.0)

    @property
    def is_ready(self) -> bool:
        return self.mode is ModuleMode.READY

    def reset_to_absolute(self) -> CalibrationResult:
        """Seed the steering counter from the absolute sensor and enter READY.

        Blocks for up to max_attempts * poll_interval_s while the sensor is
        not yet valid.
        """

        result = CalibrationSequencer(
            self._sensor,
            self._steering,
            offset_deg=self.cfg.angle_offset_deg,
            gearing=self.cfg.gearing,
            policy=self.cfg.calibration,
            sleep=self._sleep,
            clock=self._clock,
        ).run()

        if result.succeeded:
            self._log(
                f"Calibrated to {result.seed_deg:.2f} deg "
                f"(absolute={result.absolute_deg:.2f} attempts={result.attempts} {result.elapsed_ms:.0f} ms)"
            )
        else:
            self._log(
                f"[WARNING] Absolute sensor never valid after {result.attempts} attempts "
                f"({result.elapsed_ms:.0f} ms); seeded from last read {result.absolute_deg:.2f} deg"
            )

        self._last_angle_deg = normalize_degrees(self._get_angle())
        self.mode = ModuleMode.READY
        return result

    def set_desired_state(self, desired: DesiredState, open_loop: bool) -> None:
        if self.mode is not ModuleMode.READY:
            raise ModuleNotReadyError(f"Module {self.module_number} is not calibrated")

        current = self._get_angle()

        # Hold the last heading when nearly stopped, to prevent jitter.
        speed = float(desired.speed_mps)
        max_speed = float(self.cfg.max_speed_mps)
        if abs(speed) <= max_speed * JITTER_SPEED_FRACTION:
            angle = self._last_angle_deg
        else:
            angle = float(desired.angle_deg)

        plan = optimize_turn(current, angle)
        if plan.invert_drive:
            speed = -speed

        self._set_angle(current + plan.delta_deg)
        self._set_speed(speed, open_loop)
        self._last_angle_deg = plan.angle_deg

    def _set_angle(self, angle_deg: float) -> None:
        g = self.cfg.gearing
        self._steering.set_position_target(
            degrees_to_ticks(angle_deg, g.steering_ratio, ticks_per_rev=g.ticks_per_rev)
        )

    def _set_speed(self, speed_mps: float, open_loop: bool) -> None:
        if open_loop:
            self._drive.set_throttle(speed_mps / float(self.cfg.max_speed_mps))
            return

        g = self.cfg.gearing
        velocity = mps_to_ticks_per_interval(
            speed_mps,
            g.wheel_circumference_m,
            g.drive_ratio,
            ticks_per_rev=g.ticks_per_rev,
            interval_s=g.velocity_interval_s,
        )
        self._drive.set_velocity_target(velocity, self.cfg.feedforward.calculate(speed_mps))

    def stop(self) -> None:
        """Zero drive output and hold the current heading."""

        self._drive.set_throttle(0.0)
        self._set_angle(self._get_angle())

    def _get_angle(self) -> float:
        g = self.cfg.gearing
        return ticks_to_degrees(self._steering.get_position(), g.steering_ratio, ticks_per_rev=g.ticks_per_rev)

    @property
    def last_angle_deg(self) -> float:
        return self._last_angle_deg

    def get_state(self) -> ModuleState:
        g = self.cfg.gearing
        speed = ticks_per_interval_to_mps(
            self._drive.get_velocity(),
            g.wheel_circumference_m,
            g.drive_ratio,
            ticks_per_rev=g.ticks_per_rev,
            interval_s=g.velocity_interval_s,
        )
        return ModuleState(speed_mps=speed, counter_deg=self._get_angle())

    def get_position(self) -> ModulePosition:
        g = self.cfg.gearing
        distance = ticks_to_meters(
            self._drive.get_position(), g.wheel_circumference_m, g.drive_ratio, ticks_per_rev=g.ticks_per_rev
        )
        return ModulePosition(distance_m=distance, counter_deg=self._get_angle())

    def get_absolute_angle(self) -> float:
        return float(self._sensor.read_position())

    def angle_offset_difference(self) -> float:
        """Absolute reading minus the configured offset, in [0, 360)."""

        return offset_difference(self.get_absolute_angle(), self.cfg.angle_offset_deg)
