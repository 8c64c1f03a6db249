"""
blockutils format orchestrator.

Runs one format request through Validate, ConfirmUnmounted, BuildCommand,
Execute and Interpret. Nothing is kept between requests and nothing is
retried: a failed format may already have written to the device.

Callers must serialize concurrent requests against the same device.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from blockutils.core.commands import BuiltCommand, CommandBuilder
from blockutils.core.config import FormatConfig
from blockutils.core.errors import (
    BlockUtilsError,
    DeviceNotFound,
    FormatFailed,
    ToolInvocationFailed,
)
from blockutils.core.logging import OperationLogger, get_logger
from blockutils.core.models import DeviceInfo, FormatOutcome, FormatRequest
from blockutils.core.safety import (
    PreflightReport,
    check_existing_filesystem,
    check_filesystem_selected,
    check_not_composite_member,
    check_not_mounted,
)
from blockutils.platform.base import DeviceProperty

if TYPE_CHECKING:
    from blockutils.core.aggregator import DeviceAggregator
    from blockutils.platform.base import MountResolver, ProcessRunner, PropertyReader

logger = get_logger(__name__)


class FormatOrchestrator:
    """Creates filesystems by delegating to external tools."""

    def __init__(
        self,
        aggregator: DeviceAggregator,
        reader: PropertyReader,
        mount_resolver: MountResolver,
        runner: ProcessRunner,
        config: FormatConfig | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.reader = reader
        self.mount_resolver = mount_resolver
        self.runner = runner
        self.config = config or FormatConfig()
        self.builder = CommandBuilder(
            zfs_mount_root=self.config.zfs_mount_root,
            resolve_tool=self.config.resolve_tool,
        )

    def build_command(self, request: FormatRequest) -> BuiltCommand:
        """Translate a request into its tool invocation without running anything."""
        return self.builder.build(request.device_path, request.filesystem, request.options)

    def preflight(self, request: FormatRequest) -> PreflightReport:
        """
        Run the Validate and ConfirmUnmounted checks.
        Raises DeviceNotFound if the target does not exist.
        """
        report = PreflightReport(checks=[check_filesystem_selected(request)])
        if not report.all_passed:
            return report

        device = self.aggregator.get_device_info(request.device_path)
        force = request.options.force
        report.checks.append(check_existing_filesystem(device, force))
        report.checks.append(check_not_composite_member(device, force))

        if request.verify_unmounted:
            report.checks.append(check_not_mounted(device, self._mounted_dependents(device)))

        return report

    def format(self, request: FormatRequest) -> FormatOutcome:
        """Format a device. Every failure is returned in the outcome."""
        with OperationLogger(
            "format",
            logger,
            device=request.device_path,
            filesystem=request.filesystem.value,
            dry_run=request.dry_run,
        ) as op:
            outcome = self._format(request, op)
            if not outcome.success:
                op.fail(error_kind=outcome.error.kind if outcome.error else None)
            outcome.duration_seconds = op.elapsed_seconds
            return outcome

    def _format(self, request: FormatRequest, op: OperationLogger) -> FormatOutcome:
        # Validate + ConfirmUnmounted
        try:
            report = self.preflight(request)
        except DeviceNotFound as e:
            return FormatOutcome.failed(request, e)

        error = report.first_error
        if error is not None:
            logger.warning(
                "Format refused by preflight checks",
                device=request.device_path,
                reason=error.message,
            )
            return FormatOutcome.failed(request, error)

        # BuildCommand
        try:
            built = self.build_command(request)
        except BlockUtilsError as e:
            return FormatOutcome.failed(request, e)
        op.update(command=built.argv)

        if request.dry_run:
            return FormatOutcome.succeeded(
                request,
                stdout=f"Would run: {' '.join(built.argv)}",
                command=built.argv,
                warnings=built.warnings,
            )

        # Execute, exactly once
        try:
            result = self.runner.run(built.executable, built.args)
        except ToolInvocationFailed as e:
            if e.device_path is None:
                e.device_path = request.device_path
            return FormatOutcome.failed(request, e, command=built.argv, warnings=built.warnings)

        # Interpret
        if not result.success:
            return FormatOutcome.failed(
                request,
                FormatFailed(
                    request.device_path,
                    returncode=result.returncode,
                    stderr=result.stderr,
                    command=built.argv,
                ),
                command=built.argv,
                warnings=built.warnings,
            )

        return FormatOutcome.succeeded(
            request,
            stdout=result.stdout,
            command=built.argv,
            warnings=built.warnings,
        )

    def _mounted_dependents(self, device: DeviceInfo) -> dict[str, str]:
        """
        Mountpoints of every device that lives on this one: its partitions
        and the devices stacked on top of it, transitively.
        """
        mounted: dict[str, str] = {}
        seen: set[str] = {device.path}
        pending = sorted(device.partitions | device.holders)

        while pending:
            dependent = pending.pop(0)
            if dependent in seen:
                continue
            seen.add(dependent)

            mountpoint = self.mount_resolver.mountpoint_of(dependent)
            if mountpoint:
                mounted[dependent] = mountpoint

            try:
                properties = self.reader.read_properties(dependent)
            except DeviceNotFound:
                continue
            for key in (DeviceProperty.PARTITIONS, DeviceProperty.HOLDERS):
                for name in (properties.get(key) or "").split():
                    path = self.reader.device_path(name)
                    if path not in seen:
                        pending.append(path)

        return mounted
