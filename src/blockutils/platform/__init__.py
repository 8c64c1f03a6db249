"""
blockutils platform adapters.

Provides the OS-specific property reader, mount resolver and process
runner the engine consumes.
"""

from __future__ import annotations

import os
import platform

from blockutils.platform.base import (
    CommandResult,
    DeviceProperty,
    MountResolver,
    ProcessRunner,
    PropertyReader,
)


def get_platform_adapters(
    timeout: float | None = None,
) -> tuple[PropertyReader, MountResolver, ProcessRunner]:
    """Get the adapters for the current OS."""
    system = platform.system().lower()

    if system == "linux":
        from blockutils.platform.linux import (
            PsutilMountResolver,
            SubprocessRunner,
            SysfsPropertyReader,
        )

        runner = SubprocessRunner(timeout=timeout)
        return SysfsPropertyReader(runner=runner), PsutilMountResolver(), runner

    raise RuntimeError(f"Unsupported platform: {system}")


def is_admin() -> bool:
    """Check if running with the privileges formatting requires."""
    return hasattr(os, "geteuid") and os.geteuid() == 0


__all__ = [
    "CommandResult",
    "DeviceProperty",
    "MountResolver",
    "ProcessRunner",
    "PropertyReader",
    "get_platform_adapters",
    "is_admin",
]
