from __future__ import annotations

import argparse
import time
from typing import Any, Callable

from .calibration import load_offsets, measure_offset, save_offsets
from .config import ModuleConfig, ODriveConfig, load_module_config
from .errors import ConfigError, CriticalModuleError, HardwareUnavailableError
from .hardware.base import AbsoluteAngleSensor, DriveActuator, SteeringActuator
from .hardware.sim import SimAbsoluteSensor, SimDriveActuator, SimSteeringActuator
from .module import DesiredState, ModuleController


class _Hardware:
    """Actuators and sensor for one module plus a way to release them."""

    def __init__(
        self,
        steering: SteeringActuator,
        drive: DriveActuator,
        sensor: AbsoluteAngleSensor,
        closer: Callable[[], None] | None = None,
    ):
        self.steering = steering
        self.drive = drive
        self.sensor = sensor
        self._closer = closer

    def close(self) -> None:
        if self._closer is not None:
            self._closer()


def _open_hardware(args: argparse.Namespace, cfg: ModuleConfig) -> _Hardware:
    name = str(args.backend)
    if name == "sim":
        return _Hardware(
            SimSteeringActuator(),
            SimDriveActuator(interval_s=cfg.gearing.velocity_interval_s),
            SimAbsoluteSensor(position_deg=float(args.sim_absolute_deg), invalid_reads=int(args.sim_invalid_reads)),
        )
    if name == "odrive":
        from .hardware.odrive_axis import open_odrive_module

        hw = open_odrive_module(
            cfg,
            ODriveConfig(
                current_limit_a=float(args.current_limit_a),
                vel_limit_turn_s=float(args.vel_limit_turn_s),
                max_torque_nm=float(args.max_torque_nm),
                run_motor_calibration=bool(args.motor_calibration),
            ),
            serial_number=args.serial,
            sensor_serial_number=args.sensor_serial,
            timeout_s=float(args.timeout),
            verbose=True,
        )
        return _Hardware(hw.steering, hw.drive, hw.sensor, hw.close)
    raise ValueError(f"Unknown backend: {name}")


def _load_config(args: argparse.Namespace) -> ModuleConfig:
    cfg = load_module_config(args.config) if args.config else ModuleConfig()
    offsets = load_offsets(args.offsets) or {}
    if int(args.module) in offsets:
        cfg = cfg.with_offset(offsets[int(args.module)])
    cfg.validate()
    return cfg


def _zero(args: argparse.Namespace, cfg: ModuleConfig, hw: _Hardware) -> int:
    offset = measure_offset(hw.sensor, policy=cfg.calibration)
    offsets = load_offsets(args.offsets) or {}
    previous = offsets.get(int(args.module))
    offsets[int(args.module)] = offset
    save_offsets(args.offsets, offsets)
    if previous is None:
        print(f"Module {args.module}: offset {offset:.3f} deg saved to {args.offsets}")
    else:
        print(f"Module {args.module}: offset {previous:.3f} -> {offset:.3f} deg saved to {args.offsets}")
    return 0


def _drive_loop(args: argparse.Namespace, cfg: ModuleConfig, hw: _Hardware) -> int:
    module = ModuleController(
        int(args.module),
        cfg,
        steering=hw.steering,
        drive=hw.drive,
        sensor=hw.sensor,
        verbose=True,
    )
    desired = DesiredState(speed_mps=float(args.speed), angle_deg=float(args.angle))

    period = 1.0 / max(1.0, float(args.loop_hz))
    status_period = 1.0 / max(0.1, float(args.status_hz))
    duration = float(args.duration_s)
    max_cycles = int(args.cycles)

    print("Swerve module running. Ctrl-C to stop.")
    start = last = time.perf_counter()
    next_status = last
    cycles = 0
    try:
        while True:
            now = time.perf_counter()
            dt = now - last
            if dt < period and cycles > 0:
                time.sleep(max(0.0, period - dt))
                now = time.perf_counter()
                dt = now - last
            last = now

            module.set_desired_state(desired, bool(args.open_loop))
            advance = getattr(hw.drive, "advance", None)
            if advance is not None:
                advance(dt)
            cycles += 1

            if now >= next_status:
                next_status = now + status_period
                state = module.get_state()
                pos = module.get_position()
                print(
                    "speed={:+.3f} m/s heading={:7.2f} deg counterRaw={:+9.2f} deg dist={:+.3f} m cmdHeading={:7.2f}".format(
                        float(state.speed_mps),
                        float(state.heading_deg),
                        float(state.counter_deg),
                        float(pos.distance_m),
                        float(module.last_angle_deg),
                    )
                )

            if max_cycles > 0 and cycles >= max_cycles:
                break
            if duration > 0.0 and now - start >= duration:
                break
    finally:
        try:
            module.stop()
        except Exception as exc:
            print(f"Failed to stop module: {exc}")
    return 0


def run(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Swerve module: calibrate and drive one steerable wheel")
    ap.add_argument("--backend", choices=["sim", "odrive"], default="sim")
    ap.add_argument("--serial", default=None, help="ODrive serial number (default: first found)")
    ap.add_argument("--sensor-serial", default=None, help="ODrive serial number carrying the absolute sensor")
    ap.add_argument("--timeout", type=float, default=30.0, help="ODrive USB discovery timeout seconds")
    ap.add_argument("--config", default=None, help="Module config JSON (default: built-in MK4 L2 values)")
    ap.add_argument("--offsets", default="swerve_offsets.json", help="Absolute sensor offsets file")
    ap.add_argument("--module", type=int, default=0, help="Module number (key in the offsets file)")

    ap.add_argument(
        "--zero",
        action="store_true",
        help="Point the wheel straight forward, then run with --zero to store the sensor offset.",
    )

    ap.add_argument("--speed", type=float, default=0.0, help="Desired wheel speed (m/s)")
    ap.add_argument("--angle", type=float, default=0.0, help="Desired wheel heading (deg)")
    ap.add_argument("--open-loop", action="store_true", help="Drive with throttle instead of closed-loop velocity")
    ap.add_argument("--loop-hz", type=float, default=50.0)
    ap.add_argument("--status-hz", type=float, default=5.0, help="Console status print rate")
    ap.add_argument("--duration-s", type=float, default=0.0, help="Stop after this many seconds (0 = run until Ctrl-C)")
    ap.add_argument("--cycles", type=int, default=0, help="Stop after this many control cycles (0 = no limit)")

    ap.add_argument("--current-limit-a", type=float, default=20.0)
    ap.add_argument("--vel-limit-turn-s", type=float, default=100.0)
    ap.add_argument("--max-torque-nm", type=float, default=1.5, help="Drive torque at full open-loop throttle")
    ap.add_argument("--motor-calibration", action="store_true", help="Run ODrive motor/encoder calibration on startup")

    ap.add_argument("--sim-absolute-deg", type=float, default=0.0, help="Simulated absolute sensor reading")
    ap.add_argument("--sim-invalid-reads", type=int, default=0, help="Simulated sensor reads reported invalid")

    args = ap.parse_args(argv)

    hw: Any = None
    try:
        cfg = _load_config(args)
        hw = _open_hardware(args, cfg)
        if bool(args.zero):
            return _zero(args, cfg, hw)
        return _drive_loop(args, cfg, hw)
    except KeyboardInterrupt:
        print("\nStopping...")
        return 0
    except HardwareUnavailableError as exc:
        print(f"Hardware error: {exc}")
        return 2
    except CriticalModuleError as exc:
        print(f"CRITICAL: {exc}")
        return 3
    except ConfigError as exc:
        print(f"Config error: {exc}")
        return 4
    except Exception as exc:
        print(f"Unexpected error: {exc}")
        return 5
    finally:
        if hw is not None:
            try:
                hw.close()
            except Exception:
                pass


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
