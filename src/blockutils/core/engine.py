"""
blockutils engine.

Wires the platform adapters to the classifier, aggregator and format
orchestrator. This is the main entry point for library users.
"""

from __future__ import annotations

from blockutils.core.aggregator import DeviceAggregator
from blockutils.core.classifier import FilesystemClassifier
from blockutils.core.config import BlockUtilsConfig
from blockutils.core.logging import get_logger, setup_logging
from blockutils.core.models import (
    DeviceInfo,
    DeviceInventory,
    FilesystemKind,
    FormatOutcome,
    FormatRequest,
)
from blockutils.core.orchestrator import FormatOrchestrator
from blockutils.core.safety import PreflightReport
from blockutils.platform.base import MountResolver, ProcessRunner, PropertyReader

logger = get_logger(__name__)


class BlockEngine:
    """
    Device metadata resolution and format orchestration.

    Holds no device state: every call reads the live system through the
    adapters, so results always reflect the current hardware.
    """

    def __init__(
        self,
        reader: PropertyReader | None = None,
        mount_resolver: MountResolver | None = None,
        runner: ProcessRunner | None = None,
        config: BlockUtilsConfig | None = None,
    ) -> None:
        self.config = config or BlockUtilsConfig()

        if reader is None or mount_resolver is None or runner is None:
            from blockutils.platform import get_platform_adapters

            default_reader, default_resolver, default_runner = get_platform_adapters(
                timeout=self.config.format.runner_timeout_seconds
            )
            reader = reader or default_reader
            mount_resolver = mount_resolver or default_resolver
            runner = runner or default_runner

        self.reader = reader
        self.mount_resolver = mount_resolver
        self.runner = runner

        self.classifier = FilesystemClassifier(reader, self.config.classifier)
        self.aggregator = DeviceAggregator(reader, mount_resolver, self.classifier)
        self.orchestrator = FormatOrchestrator(
            self.aggregator,
            reader,
            mount_resolver,
            runner,
            self.config.format,
        )

    @classmethod
    def from_config(cls, config: BlockUtilsConfig) -> BlockEngine:
        """Create an engine for this host with logging configured."""
        setup_logging(config.logging)
        return cls(config=config)

    def enumerate_devices(self) -> DeviceInventory:
        """Snapshot every block device on the host."""
        return self.aggregator.enumerate_devices()

    def get_device_info(self, path: str) -> DeviceInfo:
        """Get one device. Raises DeviceNotFound."""
        return self.aggregator.get_device_info(path)

    def classify(self, path: str) -> FilesystemKind:
        """Classify one device. Raises DeviceNotFound."""
        return self.classifier.classify(self.reader.canonical_path(path))

    def format(self, request: FormatRequest) -> FormatOutcome:
        """Create a filesystem. Failures are returned in the outcome."""
        return self.orchestrator.format(request)

    def preflight(self, request: FormatRequest) -> PreflightReport:
        """Run the format safety checks alone. Raises DeviceNotFound."""
        return self.orchestrator.preflight(request)
