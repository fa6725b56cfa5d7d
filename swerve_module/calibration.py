from __future__ import annotations

import json
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from .config import CalibrationConfig, GearingConfig
from .conversions import degrees_to_ticks
from .errors import CalibrationError, ConfigError
from .hardware.base import AbsoluteAngleSensor, SensorStatus, SteeringActuator
from .optimizer import normalize_degrees, offset_difference


class PollPhase(Enum):
    POLLING = "polling"
    VALID = "valid"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class SensorPoll:
    position_deg: float
    valid: bool
    attempts: int
    elapsed_ms: float


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of seeding the steering counter from the absolute sensor.

    succeeded is False when the sensor never reported a valid read; the seed
    then comes from the last (possibly stale) reading.
    """

    succeeded: bool
    elapsed_ms: float
    attempts: int
    absolute_deg: float
    seed_deg: float


class SensorPoller:
    """Bounded poll of an absolute sensor until it reports a valid read.

    POLLING -> VALID on the first healthy read, POLLING -> EXHAUSTED after
    `max_attempts` unhealthy ones. Each unhealthy read is followed by one
    `poll_interval_s` sleep, so the worst case blocks for
    max_attempts * poll_interval_s.
    """

    def __init__(
        self,
        sensor: AbsoluteAngleSensor,
        *,
        max_attempts: int = 100,
        poll_interval_s: float = 0.010,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._sensor = sensor
        self._max_attempts = max(1, int(max_attempts))
        self._interval = float(poll_interval_s)
        self._sleep = sleep
        self._clock = clock

        self.phase = PollPhase.POLLING
        self.attempts = 0
        self.position_deg = float("nan")

    def step(self) -> PollPhase:
        if self.phase is not PollPhase.POLLING:
            return self.phase

        self.position_deg = float(self._sensor.read_position())
        self.attempts += 1
        if self._sensor.read_status() is SensorStatus.VALID:
            self.phase = PollPhase.VALID
            return self.phase

        self._sleep(self._interval)
        if self.attempts >= self._max_attempts:
            self.phase = PollPhase.EXHAUSTED
        return self.phase

    def run(self) -> SensorPoll:
        t0 = self._clock()
        while self.step() is PollPhase.POLLING:
            pass
        return SensorPoll(
            position_deg=self.position_deg,
            valid=self.phase is PollPhase.VALID,
            attempts=self.attempts,
            elapsed_ms=(self._clock() - t0) * 1000.0,
        )


class CalibrationSequencer:
    """Seed the steering motor's relative counter from the absolute sensor.

    Runs once, after the steering motor is configured and before the module
    is commanded. Afterwards heading is tracked by the relative counter only.
    """

    def __init__(
        self,
        sensor: AbsoluteAngleSensor,
        steering: SteeringActuator,
        *,
        offset_deg: float,
        gearing: GearingConfig = GearingConfig(),
        policy: CalibrationConfig = CalibrationConfig(),
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._steering = steering
        self._offset_deg = float(offset_deg)
        self._gearing = gearing
        self._policy = policy
        self._poller = SensorPoller(
            sensor,
            max_attempts=policy.max_attempts,
            poll_interval_s=policy.poll_interval_s,
            sleep=sleep,
            clock=clock,
        )

    def run(self) -> CalibrationResult:
        poll = self._poller.run()

        seed_deg = offset_difference(poll.position_deg, self._offset_deg)
        seed_ticks = degrees_to_ticks(
            seed_deg, self._gearing.steering_ratio, ticks_per_rev=self._gearing.ticks_per_rev
        )
        self._steering.set_relative_position(seed_ticks)

        result = CalibrationResult(
            succeeded=poll.valid,
            elapsed_ms=poll.elapsed_ms,
            attempts=poll.attempts,
            absolute_deg=poll.position_deg,
            seed_deg=seed_deg,
        )
        if not poll.valid and bool(self._policy.strict):
            raise CalibrationError(
                f"Absolute sensor not valid after {poll.attempts} attempts ({poll.elapsed_ms:.0f} ms)"
            )
        return result


def calibrate(
    sensor: AbsoluteAngleSensor,
    steering: SteeringActuator,
    offset_deg: float,
    **kwargs,
) -> CalibrationResult:
    return CalibrationSequencer(sensor, steering, offset_deg=offset_deg, **kwargs).run()


def measure_offset(
    sensor: AbsoluteAngleSensor,
    *,
    policy: CalibrationConfig = CalibrationConfig(),
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> float:
    """Read the absolute sensor while the wheel points forward.

    The returned angle, in [0, 360), is the module's new offset.
    """

    poll = SensorPoller(
        sensor,
        max_attempts=policy.max_attempts,
        poll_interval_s=policy.poll_interval_s,
        sleep=sleep,
        clock=clock,
    ).run()
    if not poll.valid:
        raise CalibrationError(f"Absolute sensor not valid after {poll.attempts} attempts; offset not measured")
    return normalize_degrees(poll.position_deg)


def load_offsets(path: str) -> dict[int, float] | None:
    """Persisted absolute-sensor offsets, keyed by module number."""

    p = Path(path)
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Cannot read offsets file {path}: {exc}") from exc
    try:
        return {int(k): float(v) for k, v in data["offsets_deg"].items()}
    except (KeyError, TypeError, ValueError, AttributeError):
        return None


def save_offsets(path: str, offsets: dict[int, float]) -> None:
    p = Path(path)
    payload = {"offsets_deg": {str(int(k)): float(v) for k, v in sorted(offsets.items())}}
    p.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
