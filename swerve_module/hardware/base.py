from __future__ import annotations

from enum import Enum


class NeutralMode(Enum):
    """What a motor does when it is given no output."""

    COAST = "coast"
    BRAKE = "brake"


class SensorStatus(Enum):
    VALID = "valid"
    INVALID = "invalid"


class SteeringActuator:
    """Closed-loop position motor that turns the wheel.

    Positions are motor sensor ticks on a relative counter that never wraps.

    Implementations:
    - ODrive axis in position control.
    - In-memory simulation.
    """

    def set_position_target(self, ticks: float) -> None:
        raise NotImplementedError

    def get_position(self) -> float:
        raise NotImplementedError

    def set_relative_position(self, ticks: float) -> None:
        """Overwrite the relative counter so it reads `ticks` at the current shaft position."""

        raise NotImplementedError

    def set_inverted(self, inverted: bool) -> None:
        raise NotImplementedError

    def set_neutral_mode(self, mode: NeutralMode) -> None:
        raise NotImplementedError


class DriveActuator:
    """Motor that spins the wheel.

    Velocities are ticks per sample interval; positions are ticks.
    """

    def set_velocity_target(self, ticks_per_interval: float, feedforward_volts: float) -> None:
        raise NotImplementedError

    def set_throttle(self, fraction: float) -> None:
        """Open-loop output in [-1, 1]. Out-of-range values are clamped by the device."""

        raise NotImplementedError

    def get_velocity(self) -> float:
        raise NotImplementedError

    def get_position(self) -> float:
        raise NotImplementedError

    def set_relative_position(self, ticks: float) -> None:
        raise NotImplementedError

    def set_inverted(self, inverted: bool) -> None:
        raise NotImplementedError

    def set_neutral_mode(self, mode: NeutralMode) -> None:
        raise NotImplementedError


class AbsoluteAngleSensor:
    """Absolute steering angle sensor, only consulted at calibration."""

    def read_position(self) -> float:
        """Return the absolute angle in degrees."""

        raise NotImplementedError

    def read_status(self) -> SensorStatus:
        """Return whether the most recent read was healthy."""

        raise NotImplementedError
