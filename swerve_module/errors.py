from __future__ import annotations


class SwerveModuleError(RuntimeError):
    """Base error for the swerve module package."""


class ConfigError(SwerveModuleError):
    """Raised when a module configuration is malformed."""


class ModuleNotReadyError(SwerveModuleError):
    """Raised when a module is commanded before its steering is calibrated."""


class CriticalModuleError(SwerveModuleError):
    """A critical error that must stop actuator output."""


class CalibrationError(CriticalModuleError):
    """Raised by strict calibration when the absolute sensor never became valid."""


class HardwareUnavailableError(CriticalModuleError):
    """Raised when the requested actuator or sensor cannot be reached."""
