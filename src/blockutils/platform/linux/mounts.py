"""
Linux mount resolver backed by psutil.
"""

from __future__ import annotations

import os

import psutil

from blockutils.core.logging import get_logger
from blockutils.platform.base import MountResolver

logger = get_logger(__name__)


class PsutilMountResolver(MountResolver):
    """Looks devices up in the live mount table."""

    def _mounts(self) -> list[tuple[str, str]]:
        """(device, mountpoint) pairs for block device mounts, in table order."""
        mounts = []
        for partition in psutil.disk_partitions(all=True):
            if partition.device.startswith("/dev/"):
                mounts.append((partition.device, partition.mountpoint))
        return mounts

    @staticmethod
    def _same_device(left: str, right: str) -> bool:
        if left == right:
            return True
        return os.path.realpath(left) == os.path.realpath(right)

    def mountpoint_of(self, path: str) -> str | None:
        for device, mountpoint in self._mounts():
            if self._same_device(device, path):
                return mountpoint
        return None

    def device_at(self, mountpoint: str) -> str | None:
        target = os.path.normpath(mountpoint)
        found = None
        # Later entries shadow earlier mounts on the same directory
        for device, mounted_on in self._mounts():
            if os.path.normpath(mounted_on) == target:
                found = device
        return found
