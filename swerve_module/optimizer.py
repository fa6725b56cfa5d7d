from __future__ import annotations

import math
from dataclasses import dataclass


def normalize_degrees(degrees: float) -> float:
    """Map any angle into [0, 360)."""

    d = math.fmod(float(degrees), 360.0)
    if d < 0.0:
        d += 360.0
    # fmod of a tiny negative value can round up to exactly 360.0
    if d >= 360.0:
        d -= 360.0
    return d


def offset_difference(absolute_deg: float, offset_deg: float) -> float:
    """Absolute sensor reading corrected by the mechanical offset, in [0, 360)."""

    return normalize_degrees(float(absolute_deg) - float(offset_deg))


@dataclass(frozen=True)
class TurnPlan:
    """Result of a steering optimization.

    angle_deg: target heading in [0, 360).
    delta_deg: signed rotation from the current (unbounded) heading, in [-90, 90].
    invert_drive: True when the wheel must drive backwards along angle_deg.
    """

    angle_deg: float
    delta_deg: float
    invert_drive: bool


def optimize_turn(current_deg: float, desired_deg: float) -> TurnPlan:
    """Pick the heading that needs the least steering rotation.

    current_deg is the steering counter heading and is not normalized: it may
    carry whole revolutions of history (e.g. 725). The target is folded onto
    the half revolution either side of it, then flipped by 180 degrees (with
    drive inversion) when more than a quarter turn would still be needed.
    """

    current = float(current_deg)
    target = normalize_degrees(desired_deg)

    difference = target - current
    if difference >= 180.0 or difference < -180.0:
        target -= 360.0 * math.floor((difference + 180.0) / 360.0)

    difference = target - current

    invert = False
    if difference > 90.0:
        target -= 180.0
        invert = True
    elif difference < -90.0:
        target += 180.0
        invert = True

    return TurnPlan(
        angle_deg=normalize_degrees(target),
        delta_deg=target - current,
        invert_drive=invert,
    )
