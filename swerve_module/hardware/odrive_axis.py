from __future__ import annotations

import math
import sys
import time
from dataclasses import dataclass
from typing import Any

import odrive
from odrive.enums import (
    AXIS_STATE_CLOSED_LOOP_CONTROL,
    AXIS_STATE_FULL_CALIBRATION_SEQUENCE,
    AXIS_STATE_IDLE,
    CONTROL_MODE_POSITION_CONTROL,
    CONTROL_MODE_TORQUE_CONTROL,
    CONTROL_MODE_VELOCITY_CONTROL,
    INPUT_MODE_PASSTHROUGH,
)
from odrive.utils import dump_errors

from ..config import ModuleConfig, ODriveConfig
from ..errors import ConfigError, CriticalModuleError, HardwareUnavailableError
from .base import AbsoluteAngleSensor, DriveActuator, NeutralMode, SensorStatus, SteeringActuator


def _windows_usb_troubleshooting_hint() -> str:
    return (
        "Windows USB hint: The ODrive Python API uses libusb. If you see '[UsbDiscoverer] Failed to open USB device: -5', "
        "the ODrive interface is likely not bound to WinUSB or is in use.\n"
        "- Bind the ODrive 'Native Interface' to WinUSB (Zadig).\n"
        "- Close ODrive GUI/other processes using the device."
    )


def _safe_get(obj: Any, attr: str, default: Any = None) -> Any:
    try:
        return getattr(obj, attr)
    except Exception:
        return default


def _clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def _fmt_hex(v: int) -> str:
    try:
        return f"0x{int(v) & 0xFFFFFFFF:08X}"
    except Exception:
        return str(v)


def connect_odrive(*, serial_number: str | None = None, timeout_s: float = 30.0) -> Any:
    try:
        if serial_number:
            return odrive.find_any(serial_number=serial_number, timeout=timeout_s)
        return odrive.find_any(timeout=timeout_s)
    except Exception as exc:
        msg = f"Failed to find/connect to ODrive (serial={serial_number or 'any'} timeout={timeout_s}s): {exc}"
        if sys.platform.startswith("win"):
            msg = msg + "\n" + _windows_usb_troubleshooting_hint()
        raise HardwareUnavailableError(msg) from exc


def _get_axis(odrv: Any, axis_index: int) -> Any:
    axis = _safe_get(odrv, f"axis{int(axis_index)}")
    if axis is None:
        raise HardwareUnavailableError(f"ODrive has no axis{axis_index}")
    return axis


class _ODriveAxisMotor:
    """Shared plumbing for one ODrive axis driven in module ticks.

    ODrive works in motor turns; ticks are converted with `ticks_per_rev`.
    Inversion is applied in software on every command and reading.
    """

    def __init__(
        self,
        odrv: Any,
        axis_index: int,
        *,
        ticks_per_rev: float,
        config: ODriveConfig,
        verbose: bool = False,
    ):
        self.odrv = odrv
        self.axis_index = int(axis_index)
        self.axis = _get_axis(odrv, axis_index)
        self.cfg = config
        self._ticks_per_rev = float(ticks_per_rev)
        self._verbose = verbose
        self._sign = 1.0
        self._neutral_mode = NeutralMode.COAST
        self._control_mode: int | None = None

    def _log(self, msg: str) -> None:
        if self._verbose:
            print(f"[axis{self.axis_index}] {msg}")

    def _ticks_to_turns(self, ticks: float) -> float:
        return self._sign * float(ticks) / self._ticks_per_rev

    def _turns_to_ticks(self, turns: float) -> float:
        return self._sign * float(turns) * self._ticks_per_rev

    def apply_safety_limits(self) -> None:
        try:
            m = self.axis.motor.config
            m.current_lim = float(self.cfg.current_limit_a)
            m.calibration_current = float(self.cfg.calibration_current_a)
        except Exception:
            pass

        try:
            self.axis.controller.config.vel_limit = float(self.cfg.vel_limit_turn_s)
        except Exception:
            pass

    def full_calibration(self) -> None:
        self._log("Full calibration (motor + encoder)...")
        self.axis.requested_state = AXIS_STATE_FULL_CALIBRATION_SEQUENCE
        entered = False
        t0 = time.time()
        while time.time() - t0 < float(self.cfg.motor_calibration_timeout_s):
            st = int(_safe_get(self.axis, "current_state", 0) or 0)
            if st != AXIS_STATE_IDLE:
                entered = True

            if st == AXIS_STATE_IDLE and entered:
                self.check_errors("Calibration ended with faults")
                return

            time.sleep(0.1)

        dump_errors(self.odrv)
        raise CriticalModuleError(f"axis{self.axis_index}: full calibration timed out")

    def enter_closed_loop(self, control_mode: int) -> None:
        self._log("Entering CLOSED_LOOP_CONTROL...")
        self._set_control_mode(control_mode)
        self.axis.requested_state = AXIS_STATE_CLOSED_LOOP_CONTROL
        time.sleep(float(self.cfg.closed_loop_settle_s))

        st = int(_safe_get(self.axis, "current_state", 0) or 0)
        axis_err = int(_safe_get(self.axis, "error", 0) or 0)
        if st != AXIS_STATE_CLOSED_LOOP_CONTROL or axis_err != 0:
            dump_errors(self.odrv)
            raise CriticalModuleError(
                f"axis{self.axis_index}: failed to enter CLOSED_LOOP_CONTROL (state={st} axis_err={_fmt_hex(axis_err)})"
            )

    def _set_control_mode(self, control_mode: int) -> None:
        if self._control_mode == control_mode:
            return
        try:
            c = self.axis.controller.config
            c.control_mode = control_mode
            c.input_mode = INPUT_MODE_PASSTHROUGH
        except Exception as exc:
            raise CriticalModuleError(f"axis{self.axis_index}: failed to set control mode: {exc}") from exc
        self._control_mode = control_mode

    def check_errors(self, context: str = "ODrive fault") -> None:
        axis_err = int(_safe_get(self.axis, "error", 0) or 0)
        motor_err = int(_safe_get(self.axis.motor, "error", 0) or 0)
        enc_err = int(_safe_get(self.axis.encoder, "error", 0) or 0)
        if axis_err or motor_err or enc_err:
            dump_errors(self.odrv)
            raise CriticalModuleError(
                f"axis{self.axis_index}: {context} "
                f"(axis_err={_fmt_hex(axis_err)} motor_err={_fmt_hex(motor_err)} enc_err={_fmt_hex(enc_err)})"
            )

    def get_position(self) -> float:
        pos = float(_safe_get(self.axis.encoder, "pos_estimate", float("nan")))
        if math.isnan(pos):
            raise CriticalModuleError(f"axis{self.axis_index}: invalid encoder position (NaN)")
        return self._turns_to_ticks(pos)

    def set_relative_position(self, ticks: float) -> None:
        cpr = float(_safe_get(self.axis.encoder.config, "cpr", 0) or 0)
        if cpr <= 0:
            raise CriticalModuleError(f"axis{self.axis_index}: encoder CPR unavailable")
        counts = self._ticks_to_turns(ticks) * cpr
        try:
            self.axis.encoder.set_linear_count(int(round(counts)))
        except Exception as exc:
            raise CriticalModuleError(f"axis{self.axis_index}: failed to set encoder count: {exc}") from exc

    def set_inverted(self, inverted: bool) -> None:
        self._sign = -1.0 if bool(inverted) else 1.0

    def set_neutral_mode(self, mode: NeutralMode) -> None:
        self._neutral_mode = mode

    def disable_output(self) -> None:
        """Release the axis according to its neutral mode."""

        if self._neutral_mode is NeutralMode.BRAKE:
            try:
                self._set_control_mode(CONTROL_MODE_VELOCITY_CONTROL)
                self.axis.controller.input_vel = 0.0
                self.axis.controller.input_torque = 0.0
            except Exception:
                pass
            return
        try:
            self.axis.requested_state = AXIS_STATE_IDLE
        except Exception:
            pass

    def close(self) -> None:
        self.disable_output()


class ODriveSteeringActuator(_ODriveAxisMotor, SteeringActuator):
    def set_position_target(self, ticks: float) -> None:
        self._set_control_mode(CONTROL_MODE_POSITION_CONTROL)
        try:
            self.axis.controller.input_pos = self._ticks_to_turns(ticks)
        except Exception as exc:
            raise CriticalModuleError(f"axis{self.axis_index}: failed to set position: {exc}") from exc

    def set_relative_position(self, ticks: float) -> None:
        super().set_relative_position(ticks)
        # Hold the re-seeded position; the old target is in the old frame.
        self.set_position_target(ticks)


class ODriveDriveActuator(_ODriveAxisMotor, DriveActuator):
    def __init__(self, odrv: Any, axis_index: int, *, interval_s: float, **kwargs):
        super().__init__(odrv, axis_index, **kwargs)
        self._interval_s = float(interval_s)

    def set_velocity_target(self, ticks_per_interval: float, feedforward_volts: float) -> None:
        self._set_control_mode(CONTROL_MODE_VELOCITY_CONTROL)
        torque_ff = self._sign * float(feedforward_volts) * float(self.cfg.torque_per_volt_nm)
        try:
            self.axis.controller.input_vel = self._ticks_to_turns(ticks_per_interval) / self._interval_s
            self.axis.controller.input_torque = torque_ff
        except Exception as exc:
            raise CriticalModuleError(f"axis{self.axis_index}: failed to set velocity: {exc}") from exc

    def set_throttle(self, fraction: float) -> None:
        self._set_control_mode(CONTROL_MODE_TORQUE_CONTROL)
        cmd = float(fraction)
        if not math.isfinite(cmd):
            cmd = 0.0
        torque = self._sign * _clamp(cmd, -1.0, 1.0) * float(self.cfg.max_torque_nm)
        try:
            self.axis.controller.input_torque = torque
        except Exception as exc:
            raise CriticalModuleError(f"axis{self.axis_index}: failed to set torque: {exc}") from exc

    def get_velocity(self) -> float:
        vel = float(_safe_get(self.axis.encoder, "vel_estimate", float("nan")))
        if math.isnan(vel):
            raise CriticalModuleError(f"axis{self.axis_index}: invalid encoder velocity (NaN)")
        return self._turns_to_ticks(vel) * self._interval_s


class ODriveAbsoluteSensor(AbsoluteAngleSensor):
    """Absolute encoder on the steering output, read as `encoder.pos_abs`.

    The reading is the wheel heading, so the axis must not be the steering or
    drive motor encoder. A motor encoder sits before the steering reduction.
    """

    def __init__(self, odrv: Any, axis_index: int):
        self.odrv = odrv
        self.axis_index = int(axis_index)
        self.axis = _get_axis(odrv, axis_index)
        self._last_ok = False

    def read_position(self) -> float:
        enc = self.axis.encoder
        pos_abs = _safe_get(enc, "pos_abs", None)
        cpr = float(_safe_get(enc.config, "cpr", 0) or 0)
        if pos_abs is None or cpr <= 0:
            self._last_ok = False
            return float("nan")

        enc_err = int(_safe_get(enc, "error", 0) or 0)
        self._last_ok = enc_err == 0
        return float(pos_abs) / cpr * 360.0

    def read_status(self) -> SensorStatus:
        return SensorStatus.VALID if self._last_ok else SensorStatus.INVALID


@dataclass
class ODriveModuleHardware:
    odrv: Any
    steering: ODriveSteeringActuator
    drive: ODriveDriveActuator
    sensor: ODriveAbsoluteSensor

    def close(self) -> None:
        for motor in (self.drive, self.steering):
            try:
                motor.close()
            except Exception:
                pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def open_odrive_module(
    config: ModuleConfig,
    odrive_config: ODriveConfig = ODriveConfig(),
    *,
    serial_number: str | None = None,
    sensor_serial_number: str | None = None,
    timeout_s: float = 30.0,
    verbose: bool = False,
) -> ODriveModuleHardware:
    """Connect to one ODrive and bring up the steering and drive axes.

    The absolute sensor is read from `ids.sensor` on the board given by
    `sensor_serial_number`, or on the motor board when that is None. On the
    motor board it must be an axis other than the steering and drive ones.

    Critical errors raise CriticalModuleError.
    """

    ids = config.ids
    if sensor_serial_number is None and ids.sensor in (ids.steering, ids.drive):
        raise ConfigError(
            f"Absolute sensor axis {ids.sensor} is a motor encoder on the same ODrive; "
            "wire the sensor to its own axis or pass sensor_serial_number"
        )

    odrv = connect_odrive(serial_number=serial_number, timeout_s=timeout_s)
    if verbose:
        print("Clearing errors...")
    try:
        odrv.clear_errors()
    except Exception:
        pass
    time.sleep(0.2)

    g = config.gearing
    steering = ODriveSteeringActuator(
        odrv, ids.steering, ticks_per_rev=g.ticks_per_rev, config=odrive_config, verbose=verbose
    )
    drive = ODriveDriveActuator(
        odrv,
        ids.drive,
        interval_s=g.velocity_interval_s,
        ticks_per_rev=g.ticks_per_rev,
        config=odrive_config,
        verbose=verbose,
    )
    if sensor_serial_number is None:
        sensor = ODriveAbsoluteSensor(odrv, ids.sensor)
    else:
        sensor_odrv = connect_odrive(serial_number=sensor_serial_number, timeout_s=timeout_s)
        sensor = ODriveAbsoluteSensor(sensor_odrv, ids.sensor)

    for motor in (steering, drive):
        motor.apply_safety_limits()
        if bool(odrive_config.run_motor_calibration):
            motor.full_calibration()

    steering.enter_closed_loop(CONTROL_MODE_POSITION_CONTROL)
    drive.enter_closed_loop(CONTROL_MODE_VELOCITY_CONTROL)

    return ODriveModuleHardware(odrv=odrv, steering=steering, drive=drive, sensor=sensor)
