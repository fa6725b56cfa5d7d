"""Steering optimization: minimal rotation with drive inversion."""

import pytest

from swerve_module.optimizer import normalize_degrees, offset_difference, optimize_turn


def _circular_distance(a: float, b: float) -> float:
    return abs((a - b + 180.0) % 360.0 - 180.0)


@pytest.mark.parametrize(
    "degrees,expected",
    [(0.0, 0.0), (360.0, 0.0), (725.0, 5.0), (-30.0, 330.0), (-720.0, 0.0), (359.5, 359.5)],
)
def test_normalize_degrees(degrees, expected):
    assert normalize_degrees(degrees) == pytest.approx(expected)


def test_normalize_tiny_negative_stays_below_360():
    d = normalize_degrees(-1e-20)
    assert 0.0 <= d < 360.0


def test_offset_difference_wraps():
    assert offset_difference(10.0, 30.0) == pytest.approx(340.0)
    assert offset_difference(200.0, 30.0) == pytest.approx(170.0)


def test_large_turn_flips_and_inverts():
    plan = optimize_turn(10.0, 200.0)
    assert plan.angle_deg == pytest.approx(20.0)
    assert plan.delta_deg == pytest.approx(10.0)
    assert plan.invert_drive is True


def test_turn_across_zero_takes_short_way():
    plan = optimize_turn(350.0, 5.0)
    assert plan.angle_deg == pytest.approx(5.0)
    assert plan.delta_deg == pytest.approx(15.0)
    assert plan.invert_drive is False


def test_accumulated_heading_is_not_unwound():
    plan = optimize_turn(725.0, 10.0)
    assert plan.angle_deg == pytest.approx(10.0)
    assert plan.delta_deg == pytest.approx(5.0)
    assert plan.invert_drive is False


def test_negative_accumulated_heading():
    plan = optimize_turn(-350.0, 0.0)
    assert plan.delta_deg == pytest.approx(-10.0)
    assert plan.angle_deg == pytest.approx(0.0)


@pytest.mark.parametrize("heading", [0.0, 45.0, 90.0, 180.0, 359.5, 725.0, -270.0])
def test_no_change_keeps_heading(heading):
    plan = optimize_turn(heading, heading)
    assert plan.angle_deg == pytest.approx(normalize_degrees(heading))
    assert plan.delta_deg == pytest.approx(0.0, abs=1e-9)
    assert plan.invert_drive is False


def test_exact_quarter_turn_does_not_invert():
    plan = optimize_turn(0.0, 90.0)
    assert plan.delta_deg == pytest.approx(90.0)
    assert plan.invert_drive is False

    plan = optimize_turn(0.0, 270.0)
    assert plan.delta_deg == pytest.approx(-90.0)
    assert plan.angle_deg == pytest.approx(270.0)
    assert plan.invert_drive is False


def test_half_turn_inverts_without_moving():
    plan = optimize_turn(0.0, 180.0)
    assert plan.delta_deg == pytest.approx(0.0)
    assert plan.angle_deg == pytest.approx(0.0)
    assert plan.invert_drive is True


def test_rotation_bounded_for_any_heading():
    for current in range(-1080, 1081, 35):
        for desired in range(0, 360, 7):
            plan = optimize_turn(float(current), float(desired))

            assert abs(plan.delta_deg) <= 90.0 + 1e-9, (current, desired)
            assert 0.0 <= plan.angle_deg < 360.0
            # the commanded counter position lands on the returned heading
            assert _circular_distance(current + plan.delta_deg, plan.angle_deg) < 1e-6
            # wheel still travels along the requested direction
            travel = plan.angle_deg + (180.0 if plan.invert_drive else 0.0)
            assert _circular_distance(travel, desired) < 1e-6, (current, desired)
