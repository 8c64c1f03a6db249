"""
blockutils error types.

Every failure the engine reports is one of these. Read paths raise them;
format requests return them inside a FormatOutcome.
"""

from __future__ import annotations

from typing import Any


class BlockUtilsError(Exception):
    """Base class for all blockutils errors."""

    def __init__(self, message: str, device_path: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.device_path = device_path

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "device_path": self.device_path,
        }


class DeviceNotFound(BlockUtilsError):
    """The path does not correspond to a known block device right now."""

    def __init__(self, device_path: str, message: str | None = None) -> None:
        super().__init__(message or f"Device not found: {device_path}", device_path)


class AmbiguousOrUnknownFilesystem(BlockUtilsError):
    """No concrete filesystem kind was given where one is required."""


class UnsafeOperation(BlockUtilsError):
    """A destructive operation was refused by a safety check."""

    def __init__(
        self,
        message: str,
        device_path: str | None = None,
        reason: str = "unsafe",
    ) -> None:
        super().__init__(message, device_path)
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


class ToolInvocationFailed(BlockUtilsError):
    """The external tool could not be started at all."""

    def __init__(
        self,
        command: str,
        cause: OSError | None = None,
        device_path: str | None = None,
    ) -> None:
        detail = cause.strerror if cause is not None and cause.strerror else str(cause)
        super().__init__(f"Could not run {command}: {detail}", device_path)
        self.command = command
        self.cause = cause
        self.errno = cause.errno if cause is not None else None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["command"] = self.command
        data["errno"] = self.errno
        return data


class FormatFailed(BlockUtilsError):
    """The external tool ran and exited non-zero."""

    def __init__(
        self,
        device_path: str,
        returncode: int,
        stderr: str,
        command: list[str] | None = None,
    ) -> None:
        summary = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(
            f"Format of {device_path} failed (exit {returncode}): {summary}",
            device_path,
        )
        self.returncode = returncode
        self.stderr = stderr
        self.command = command or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["returncode"] = self.returncode
        data["stderr"] = self.stderr
        data["command"] = self.command
        return data
