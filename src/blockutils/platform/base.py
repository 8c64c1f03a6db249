"""
blockutils platform adapter base.

Defines the abstract capabilities the engine consumes: reading raw device
properties, resolving mountpoints and running external tools.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping, Sequence


class DeviceProperty:
    """Property names understood by the engine.

    Upper-case names follow the udev database; lower-case names are sysfs
    attributes relative to the device's /sys/class/block directory.
    """

    DEVNAME = "DEVNAME"
    DEVTYPE = "DEVTYPE"
    FS_TYPE = "ID_FS_TYPE"
    FS_USAGE = "ID_FS_USAGE"
    FS_UUID = "ID_FS_UUID"
    FS_LABEL = "ID_FS_LABEL"
    SERIAL = "ID_SERIAL"
    VENDOR = "ID_VENDOR"
    ROTATION_RATE = "ID_ATA_ROTATION_RATE_RPM"
    PART_ENTRY_NUMBER = "ID_PART_ENTRY_NUMBER"
    DM_NAME = "DM_NAME"
    DM_UUID = "DM_UUID"

    SIZE = "size"  # 512-byte sectors
    REMOVABLE = "removable"
    ROTATIONAL = "queue/rotational"
    PARTITION = "partition"
    HOLDERS = "holders"  # whitespace separated device names
    SLAVES = "slaves"  # whitespace separated device names
    PARTITIONS = "partitions"  # whitespace separated child partition names

    SECTOR_SIZE = 512


class CommandResult:
    """Result of a command execution."""

    def __init__(
        self,
        returncode: int,
        stdout: str,
        stderr: str,
        command: str | list[str],
        duration_seconds: float = 0.0,
    ) -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.command = command
        self.duration_seconds = duration_seconds

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def __repr__(self) -> str:
        cmd = self.command if isinstance(self.command, str) else " ".join(self.command)
        return f"CommandResult(rc={self.returncode}, cmd='{cmd[:50]}...')"


class PropertyReader(ABC):
    """Supplies raw key/value properties for block devices."""

    @abstractmethod
    def list_device_paths(self) -> Sequence[str]:
        """All block device paths currently known, in enumeration order."""

    @abstractmethod
    def read_properties(self, path: str) -> Mapping[str, str]:
        """
        Raw properties of one device.
        Raises DeviceNotFound if the device is gone.
        """

    @abstractmethod
    def read_signature_bytes(self, path: str, offset: int, length: int) -> bytes:
        """
        Read raw bytes from the device for magic-number probing.
        May return fewer bytes than requested near the end of the device.
        Raises DeviceNotFound if the device is gone.
        """

    def canonical_path(self, path: str) -> str:
        """Resolve aliases (symlinks) to the path used by list_device_paths."""
        return path

    def device_path(self, name: str) -> str:
        """Path of a device named in the holders, slaves or partitions lists."""
        return name if name.startswith("/") else f"/dev/{name}"


class MountResolver(ABC):
    """Maps device paths to mountpoints."""

    @abstractmethod
    def mountpoint_of(self, path: str) -> str | None:
        """Where the device is mounted, or None."""

    @abstractmethod
    def device_at(self, mountpoint: str) -> str | None:
        """Which device is mounted at a directory, or None."""


class ProcessRunner(ABC):
    """Executes external tools."""

    @abstractmethod
    def run(self, command: str, args: Sequence[str]) -> CommandResult:
        """
        Run a command to completion and capture its output.
        Raises ToolInvocationFailed if the command cannot be started.
        """
