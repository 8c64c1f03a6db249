"""
blockutils - Block device discovery, classification and formatting.

Turns raw device properties into typed records, classifies the content of
each device and drives external mkfs tools with typed failure reporting.
"""

__version__ = "0.11.1"
__author__ = "blockutils developers"

from blockutils.core.config import BlockUtilsConfig
from blockutils.core.engine import BlockEngine
from blockutils.core.models import FilesystemKind, FormatOptions, FormatRequest

__all__ = [
    "BlockUtilsConfig",
    "BlockEngine",
    "FilesystemKind",
    "FormatOptions",
    "FormatRequest",
    "__version__",
]
