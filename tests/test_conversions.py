"""Tick <-> physical unit conversions."""

import math

import pytest

from swerve_module.conversions import (
    TICKS_PER_REV,
    degrees_to_ticks,
    meters_to_ticks,
    mps_to_ticks_per_interval,
    rpm_to_ticks_per_interval,
    ticks_per_interval_to_mps,
    ticks_per_interval_to_rpm,
    ticks_to_degrees,
    ticks_to_meters,
)

CIRCUMFERENCE = 0.1016 * math.pi


def test_one_mechanism_turn_is_ratio_motor_turns():
    assert degrees_to_ticks(360.0, 1.0) == pytest.approx(TICKS_PER_REV)
    assert degrees_to_ticks(360.0, 12.8) == pytest.approx(12.8 * TICKS_PER_REV)
    assert ticks_to_degrees(12.8 * TICKS_PER_REV, 12.8) == pytest.approx(360.0)


@pytest.mark.parametrize("degrees", [0.0, 1.5, 90.0, 359.999, 725.0, -270.0])
@pytest.mark.parametrize("ratio", [1.0, 150.0 / 7.0, 12.8])
def test_degrees_round_trip(degrees, ratio):
    assert ticks_to_degrees(degrees_to_ticks(degrees, ratio), ratio) == pytest.approx(degrees, abs=1e-9)


def test_rpm_conversion_uses_100ms_interval():
    # 600 motor rpm = 10 rev/s = 1 rev per 100 ms
    assert rpm_to_ticks_per_interval(600.0, 1.0) == pytest.approx(TICKS_PER_REV)
    assert ticks_per_interval_to_rpm(TICKS_PER_REV, 1.0) == pytest.approx(600.0)
    assert ticks_per_interval_to_rpm(rpm_to_ticks_per_interval(123.0, 6.75), 6.75) == pytest.approx(123.0)


def test_one_wheel_rev_per_second():
    ticks = mps_to_ticks_per_interval(CIRCUMFERENCE, CIRCUMFERENCE, 6.75)
    assert ticks == pytest.approx(6.75 * TICKS_PER_REV / 10.0)


@pytest.mark.parametrize("mps", [0.0, 0.045, 1.0, -3.2, 4.5])
def test_velocity_round_trip(mps):
    ticks = mps_to_ticks_per_interval(mps, CIRCUMFERENCE, 6.75)
    assert ticks_per_interval_to_mps(ticks, CIRCUMFERENCE, 6.75) == pytest.approx(mps, abs=1e-12)


def test_velocity_with_custom_resolution_and_interval():
    ticks = mps_to_ticks_per_interval(CIRCUMFERENCE, CIRCUMFERENCE, 1.0, ticks_per_rev=4096.0, interval_s=1.0)
    assert ticks == pytest.approx(4096.0)
    assert ticks_per_interval_to_mps(ticks, CIRCUMFERENCE, 1.0, ticks_per_rev=4096.0, interval_s=1.0) == pytest.approx(
        CIRCUMFERENCE
    )


@pytest.mark.parametrize("meters", [0.0, 0.25, 10.0, -1.0])
def test_distance_round_trip(meters):
    ticks = meters_to_ticks(meters, CIRCUMFERENCE, 6.75)
    assert ticks_to_meters(ticks, CIRCUMFERENCE, 6.75) == pytest.approx(meters, abs=1e-12)


def test_one_wheel_rev_of_distance():
    assert meters_to_ticks(CIRCUMFERENCE, CIRCUMFERENCE, 6.75) == pytest.approx(6.75 * TICKS_PER_REV)


def test_nan_and_inf_propagate():
    assert math.isnan(degrees_to_ticks(float("nan"), 12.8))
    assert math.isinf(ticks_to_meters(float("inf"), CIRCUMFERENCE, 6.75))
