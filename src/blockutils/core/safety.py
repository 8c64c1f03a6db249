"""
blockutils safety checks.

Preflight checks run before any destructive tool is started, plus the
typed-confirmation token used by the CLI.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping

from blockutils.core.errors import (
    AmbiguousOrUnknownFilesystem,
    BlockUtilsError,
    UnsafeOperation,
)
from blockutils.core.models import FilesystemKind

if TYPE_CHECKING:
    from blockutils.core.models import DeviceInfo, FormatRequest


@dataclass
class PreflightCheck:
    """Result of a single preflight check."""

    name: str
    passed: bool
    message: str
    severity: str = "info"  # info, warning, error, critical
    details: dict[str, Any] = field(default_factory=dict)
    error: BlockUtilsError | None = None


@dataclass
class PreflightReport:
    """Complete preflight check report."""

    checks: list[PreflightCheck] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def all_passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def has_errors(self) -> bool:
        return any(c.severity in ("error", "critical") and not c.passed for c in self.checks)

    @property
    def first_error(self) -> BlockUtilsError | None:
        for check in self.checks:
            if not check.passed and check.error is not None:
                return check.error
        return None

    def get_summary(self) -> str:
        """Get human-readable summary."""
        lines = [f"Preflight Check Report ({self.timestamp.isoformat()})"]
        lines.append("=" * 60)

        passed = sum(1 for c in self.checks if c.passed)
        lines.append(f"Results: {passed}/{len(self.checks)} checks passed")
        lines.append("")

        for check in self.checks:
            status = "✓" if check.passed else "✗"
            lines.append(f"[{status}] {check.name}: {check.message}")
            for key, value in check.details.items():
                lines.append(f"    {key}: {value}")

        return "\n".join(lines)


def check_filesystem_selected(request: FormatRequest) -> PreflightCheck:
    """The desired kind must name a concrete tool."""
    if request.filesystem is FilesystemKind.UNKNOWN:
        return PreflightCheck(
            name="Filesystem Selection",
            passed=False,
            message="No filesystem kind selected",
            severity="error",
            error=AmbiguousOrUnknownFilesystem(
                "Cannot format with filesystem 'unknown'; choose a concrete kind",
                request.device_path,
            ),
        )
    return PreflightCheck(
        name="Filesystem Selection",
        passed=True,
        message=f"Target filesystem is {request.filesystem.value}",
    )


def check_existing_filesystem(device: DeviceInfo, force: bool) -> PreflightCheck:
    """Refuse to overwrite existing content unless forced."""
    if device.filesystem is FilesystemKind.UNKNOWN:
        return PreflightCheck(
            name="Existing Content",
            passed=True,
            message="No existing filesystem detected",
        )
    if force:
        return PreflightCheck(
            name="Existing Content",
            passed=True,
            message=f"Overwriting existing {device.filesystem.value} (forced)",
            severity="warning",
        )
    return PreflightCheck(
        name="Existing Content",
        passed=False,
        message=f"{device.path} already holds {device.filesystem.value}",
        severity="error",
        details={"filesystem": device.filesystem.value, "uuid": device.uuid},
        error=UnsafeOperation(
            f"{device.path} already contains {device.filesystem.value}; "
            "set force to overwrite it",
            device.path,
            reason="already_formatted",
        ),
    )


def check_not_composite_member(device: DeviceInfo, force: bool) -> PreflightCheck:
    """Refuse to format a device another device is built on unless forced."""
    if not device.holders or force:
        return PreflightCheck(
            name="Composite Membership",
            passed=True,
            message="Device is not claimed" if not device.holders else "Claimed (forced)",
        )
    holders = sorted(device.holders)
    return PreflightCheck(
        name="Composite Membership",
        passed=False,
        message=f"{device.path} is in use by {', '.join(holders)}",
        severity="error",
        details={"holders": holders},
        error=UnsafeOperation(
            f"{device.path} is a member of {', '.join(holders)}; set force to format it",
            device.path,
            reason="composite_member",
        ),
    )


def check_not_mounted(device: DeviceInfo, dependent_mounts: Mapping[str, str]) -> PreflightCheck:
    """The target, its partitions and everything stacked on it must be unmounted."""
    mounted: dict[str, str] = dict(dependent_mounts)
    if device.mountpoint:
        mounted[device.path] = device.mountpoint

    if mounted:
        where = ", ".join(f"{path} on {mp}" for path, mp in sorted(mounted.items()))
        return PreflightCheck(
            name="Mount Status",
            passed=False,
            message=f"Mounted: {where}",
            severity="error",
            details={"mounted": mounted},
            error=UnsafeOperation(
                f"Refusing to format {device.path}: {where}. Unmount first.",
                device.path,
                reason="mounted",
            ),
        )

    return PreflightCheck(
        name="Mount Status",
        passed=True,
        message="Target is not mounted",
    )


def confirmation_string(target_identifier: str) -> str:
    """Generate a confirmation string that includes the target identifier."""
    safe_target = re.sub(r"[^a-zA-Z0-9/_-]", "", target_identifier)
    return f"DESTROY-{safe_target.upper()}"
