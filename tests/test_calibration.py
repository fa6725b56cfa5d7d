"""Startup calibration: bounded sensor poll and steering counter seed."""

import json

import pytest

from swerve_module.calibration import (
    CalibrationSequencer,
    PollPhase,
    SensorPoller,
    calibrate,
    load_offsets,
    measure_offset,
    save_offsets,
)
from swerve_module.config import CalibrationConfig, GearingConfig
from swerve_module.conversions import degrees_to_ticks
from swerve_module.errors import CalibrationError, ConfigError
from swerve_module.hardware.sim import SimAbsoluteSensor, SimSteeringActuator

GEARING = GearingConfig()


def _seed_ticks(degrees: float) -> float:
    return degrees_to_ticks(degrees, GEARING.steering_ratio, ticks_per_rev=GEARING.ticks_per_rev)


def test_valid_on_first_read(clock):
    sensor = SimAbsoluteSensor(100.0)
    steering = SimSteeringActuator()

    result = CalibrationSequencer(
        sensor, steering, offset_deg=30.0, gearing=GEARING, sleep=clock.sleep, clock=clock
    ).run()

    assert result.succeeded is True
    assert result.attempts == 1
    assert result.elapsed_ms == pytest.approx(0.0)
    assert result.seed_deg == pytest.approx(70.0)
    assert clock.sleeps == []
    assert steering.relative_writes == [pytest.approx(_seed_ticks(70.0))]


def test_waits_for_sensor_to_become_valid(clock):
    sensor = SimAbsoluteSensor(45.0, invalid_reads=5)
    steering = SimSteeringActuator()

    result = calibrate(sensor, steering, 0.0, sleep=clock.sleep, clock=clock)

    assert result.succeeded is True
    assert result.attempts == 6
    assert clock.sleeps == [0.010] * 5
    assert result.elapsed_ms == pytest.approx(50.0)


def test_exhausted_sensor_degrades_but_still_seeds(clock):
    sensor = SimAbsoluteSensor(123.0, invalid_reads=10**6)
    steering = SimSteeringActuator()

    result = calibrate(sensor, steering, 23.0, sleep=clock.sleep, clock=clock)

    assert result.succeeded is False
    assert result.attempts == 100
    assert len(clock.sleeps) == 100
    assert result.elapsed_ms == pytest.approx(1000.0)
    assert result.seed_deg == pytest.approx(100.0)
    assert steering.relative_writes == [pytest.approx(_seed_ticks(100.0))]


def test_strict_policy_raises_after_seeding(clock):
    sensor = SimAbsoluteSensor(10.0, invalid_reads=10**6)
    steering = SimSteeringActuator()

    with pytest.raises(CalibrationError):
        calibrate(
            sensor,
            steering,
            0.0,
            policy=CalibrationConfig(strict=True),
            sleep=clock.sleep,
            clock=clock,
        )
    assert len(steering.relative_writes) == 1


def test_strict_policy_passes_when_valid(clock):
    result = calibrate(
        SimAbsoluteSensor(10.0),
        SimSteeringActuator(),
        0.0,
        policy=CalibrationConfig(strict=True),
        sleep=clock.sleep,
        clock=clock,
    )
    assert result.succeeded is True


def test_seed_wraps_below_offset(clock):
    steering = SimSteeringActuator()
    result = calibrate(SimAbsoluteSensor(10.0), steering, 30.0, sleep=clock.sleep, clock=clock)
    assert result.seed_deg == pytest.approx(340.0)


def test_poller_phases(clock):
    poller = SensorPoller(SimAbsoluteSensor(5.0, invalid_reads=2), max_attempts=3, sleep=clock.sleep, clock=clock)

    assert poller.phase is PollPhase.POLLING
    assert poller.step() is PollPhase.POLLING
    assert poller.step() is PollPhase.POLLING
    assert poller.step() is PollPhase.VALID
    # finished pollers do not read again
    assert poller.step() is PollPhase.VALID
    assert poller.attempts == 3


def test_poller_exhausts_at_bound(clock):
    poller = SensorPoller(SimAbsoluteSensor(5.0, invalid_reads=99), max_attempts=2, sleep=clock.sleep, clock=clock)
    poll = poller.run()
    assert poller.phase is PollPhase.EXHAUSTED
    assert poll.valid is False
    assert poll.attempts == 2
    assert poll.position_deg == pytest.approx(5.0)


def test_measure_offset(clock):
    assert measure_offset(SimAbsoluteSensor(-15.0), sleep=clock.sleep, clock=clock) == pytest.approx(345.0)


def test_measure_offset_requires_valid_sensor(clock):
    with pytest.raises(CalibrationError):
        measure_offset(SimAbsoluteSensor(0.0, invalid_reads=10**6), sleep=clock.sleep, clock=clock)


def test_offsets_round_trip(tmp_path):
    path = str(tmp_path / "offsets.json")
    assert load_offsets(path) is None

    save_offsets(path, {0: 12.5, 3: 301.25})
    assert load_offsets(path) == {0: 12.5, 3: 301.25}


def test_malformed_offsets_file(tmp_path):
    path = tmp_path / "offsets.json"
    path.write_text(json.dumps({"something": 1}), encoding="utf-8")
    assert load_offsets(str(path)) is None


def test_unreadable_offsets_file_is_config_error(tmp_path):
    path = tmp_path / "offsets.json"
    path.write_text('{"offsets_deg": {"0": 12.', encoding="utf-8")
    with pytest.raises(ConfigError):
        load_offsets(str(path))
