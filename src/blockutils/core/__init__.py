"""
blockutils core - device resolution and format orchestration.

Contains the classifier, aggregator, orchestrator, configuration,
logging and error types.
"""

from blockutils.core.config import BlockUtilsConfig
from blockutils.core.engine import BlockEngine
from blockutils.core.errors import (
    AmbiguousOrUnknownFilesystem,
    BlockUtilsError,
    DeviceNotFound,
    FormatFailed,
    ToolInvocationFailed,
    UnsafeOperation,
)
from blockutils.core.logging import get_logger, setup_logging
from blockutils.core.models import (
    DeviceInfo,
    DeviceInventory,
    FilesystemKind,
    FormatOptions,
    FormatOutcome,
    FormatRequest,
)

__all__ = [
    "BlockUtilsConfig",
    "BlockEngine",
    "AmbiguousOrUnknownFilesystem",
    "BlockUtilsError",
    "DeviceNotFound",
    "FormatFailed",
    "ToolInvocationFailed",
    "UnsafeOperation",
    "get_logger",
    "setup_logging",
    "DeviceInfo",
    "DeviceInventory",
    "FilesystemKind",
    "FormatOptions",
    "FormatOutcome",
    "FormatRequest",
]
