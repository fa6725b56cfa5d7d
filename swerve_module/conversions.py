"""Physical units <-> motor sensor ticks.

Ticks are counted at the motor shaft, so every conversion goes through the
gear ratio (motor turns per mechanism turn). Velocity ticks are reported per
sample interval (100 ms by default), not per second.
"""

from __future__ import annotations

TICKS_PER_REV = 2048.0
VELOCITY_INTERVAL_S = 0.1


def degrees_to_ticks(degrees: float, gear_ratio: float, *, ticks_per_rev: float = TICKS_PER_REV) -> float:
    return degrees / (360.0 / (gear_ratio * ticks_per_rev))


def ticks_to_degrees(ticks: float, gear_ratio: float, *, ticks_per_rev: float = TICKS_PER_REV) -> float:
    return ticks * (360.0 / (gear_ratio * ticks_per_rev))


def rpm_to_ticks_per_interval(
    rpm: float,
    gear_ratio: float,
    *,
    ticks_per_rev: float = TICKS_PER_REV,
    interval_s: float = VELOCITY_INTERVAL_S,
) -> float:
    motor_rpm = rpm * gear_ratio
    return motor_rpm * ticks_per_rev * interval_s / 60.0


def ticks_per_interval_to_rpm(
    ticks: float,
    gear_ratio: float,
    *,
    ticks_per_rev: float = TICKS_PER_REV,
    interval_s: float = VELOCITY_INTERVAL_S,
) -> float:
    motor_rpm = ticks * (60.0 / interval_s) / ticks_per_rev
    return motor_rpm / gear_ratio


def mps_to_ticks_per_interval(
    mps: float,
    circumference: float,
    gear_ratio: float,
    *,
    ticks_per_rev: float = TICKS_PER_REV,
    interval_s: float = VELOCITY_INTERVAL_S,
) -> float:
    wheel_rpm = (mps * 60.0) / circumference
    return rpm_to_ticks_per_interval(wheel_rpm, gear_ratio, ticks_per_rev=ticks_per_rev, interval_s=interval_s)


def ticks_per_interval_to_mps(
    ticks: float,
    circumference: float,
    gear_ratio: float,
    *,
    ticks_per_rev: float = TICKS_PER_REV,
    interval_s: float = VELOCITY_INTERVAL_S,
) -> float:
    wheel_rpm = ticks_per_interval_to_rpm(ticks, gear_ratio, ticks_per_rev=ticks_per_rev, interval_s=interval_s)
    return (wheel_rpm * circumference) / 60.0


def meters_to_ticks(meters: float, circumference: float, gear_ratio: float, *, ticks_per_rev: float = TICKS_PER_REV) -> float:
    return meters / (circumference / (gear_ratio * ticks_per_rev))


def ticks_to_meters(ticks: float, circumference: float, gear_ratio: float, *, ticks_per_rev: float = TICKS_PER_REV) -> float:
    return ticks * (circumference / (gear_ratio * ticks_per_rev))
