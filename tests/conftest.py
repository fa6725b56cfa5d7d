from __future__ import annotations

import pytest

from swerve_module.config import CalibrationConfig, ModuleConfig
from swerve_module.hardware.sim import SimAbsoluteSensor, SimDriveActuator, SimSteeringActuator
from swerve_module.module import ModuleController


class FakeClock:
    """Monotonic clock whose sleep() advances time instead of blocking."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(float(seconds))
        self.now += float(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_module(clock):
    """Build a ModuleController on simulated hardware.

    Returns (module, steering, drive, sensor).
    """

    def _make(
        *,
        absolute_deg: float = 0.0,
        offset_deg: float = 0.0,
        invalid_reads: int = 0,
        config: ModuleConfig | None = None,
        calibrate: bool = True,
        verbose: bool = False,
    ):
        cfg = config if config is not None else ModuleConfig()
        cfg = cfg.with_offset(offset_deg)
        steering = SimSteeringActuator()
        drive = SimDriveActuator(interval_s=cfg.gearing.velocity_interval_s)
        sensor = SimAbsoluteSensor(position_deg=absolute_deg, invalid_reads=invalid_reads)
        module = ModuleController(
            1,
            cfg,
            steering=steering,
            drive=drive,
            sensor=sensor,
            calibrate=calibrate,
            sleep=clock.sleep,
            clock=clock,
            verbose=verbose,
        )
        return module, steering, drive, sensor

    return _make


@pytest.fixture
def strict_config():
    return ModuleConfig(calibration=CalibrationConfig(strict=True))
