"""Exception hierarchy shared across the export pipeline."""

from __future__ import annotations


class ExportError(RuntimeError):
    code = "EXPORT"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


# Fatal: raised out of initialization, terminate the run.


class ConfigError(ExportError):
    code = "CONFIG"


class EngineError(ExportError):
    code = "ENGINE_LAUNCH"


class OutputDirectoryError(ExportError):
    code = "OUTPUT_DIR"


# Document-local: caught at the conversion boundary.


class SessionError(ExportError):
    """Raised by a rendering session when the engine rejects a command."""

    code = "SESSION"


class ConversionError(ExportError):
    code = "CONVERSION"


class NavigationError(ConversionError):
    code = "NAVIGATION"


class CaptureError(ConversionError):
    code = "CAPTURE"


__all__ = [
    "CaptureError",
    "ConfigError",
    "ConversionError",
    "EngineError",
    "ExportError",
    "NavigationError",
    "OutputDirectoryError",
    "SessionError",
]
