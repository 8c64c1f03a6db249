"""
blockutils data models.

Defines the core data structures for block devices and format requests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:
    from blockutils.core.errors import BlockUtilsError


class FilesystemKind(Enum):
    """Closed set of on-disk content kinds the engine understands."""

    EXT2 = "ext2"
    EXT3 = "ext3"
    EXT4 = "ext4"
    XFS = "xfs"
    BTRFS = "btrfs"
    ZFS = "zfs"
    SWAP = "swap"
    VFAT = "vfat"
    NTFS = "ntfs"
    LUKS_ENCRYPTED = "crypto_luks"
    LVM_MEMBER = "lvm2_member"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str | None) -> FilesystemKind:
        """Create FilesystemKind from a raw type string, failing closed to UNKNOWN."""
        if not isinstance(value, str):
            return cls.UNKNOWN
        value_lower = value.lower().strip()
        if not value_lower:
            return cls.UNKNOWN
        for kind in cls:
            if kind.value == value_lower or kind.name.lower() == value_lower:
                return kind
        # Vendor and tool spellings
        aliases = {
            "fat": cls.VFAT,
            "msdos": cls.VFAT,
            "fat12": cls.VFAT,
            "fat16": cls.VFAT,
            "fat32": cls.VFAT,
            "ntfs-3g": cls.NTFS,
            "ntfs3": cls.NTFS,
            "luks": cls.LUKS_ENCRYPTED,
            "luks1": cls.LUKS_ENCRYPTED,
            "luks2": cls.LUKS_ENCRYPTED,
            "lvm": cls.LVM_MEMBER,
            "lvm2": cls.LVM_MEMBER,
            "lvm1_member": cls.LVM_MEMBER,
            "zfs_member": cls.ZFS,
            "swsuspend": cls.SWAP,
            "linux-swap": cls.SWAP,
            "ext4dev": cls.EXT4,
        }
        return aliases.get(value_lower, cls.UNKNOWN)

    @property
    def is_container(self) -> bool:
        """True for kinds that wrap other content rather than hold files."""
        return self in (FilesystemKind.LUKS_ENCRYPTED, FilesystemKind.LVM_MEMBER)


class MediaType(Enum):
    """What type of media backs a device."""

    SOLID_STATE = auto()
    ROTATIONAL = auto()
    LOOPBACK = auto()
    LVM = auto()
    MD_RAID = auto()
    NVME = auto()
    RAM = auto()
    VIRTUAL = auto()
    UNKNOWN = auto()


class DeviceType(Enum):
    """Whole disk or partition."""

    DISK = "disk"
    PARTITION = "partition"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str | None) -> DeviceType:
        if not value:
            return cls.UNKNOWN
        value_lower = value.lower().strip()
        for device_type in cls:
            if device_type.value == value_lower:
                return device_type
        return cls.UNKNOWN


class MetadataProfile(Enum):
    """Btrfs metadata profile used when formatting."""

    RAID0 = "raid0"
    RAID1 = "raid1"
    RAID5 = "raid5"
    RAID6 = "raid6"
    RAID10 = "raid10"
    SINGLE = "single"
    DUP = "dup"


@dataclass(frozen=True)
class DeviceInfo:
    """Snapshot of a single block device."""

    path: str  # e.g., /dev/sda1
    filesystem: FilesystemKind = FilesystemKind.UNKNOWN
    size_bytes: int | None = None  # None = unknown, 0 is a real size
    uuid: str | None = None
    label: str | None = None
    mountpoint: str | None = None
    is_removable: bool = False
    is_rotational: bool = False
    holders: frozenset[str] = field(default_factory=frozenset)
    slaves: frozenset[str] = field(default_factory=frozenset)
    partitions: frozenset[str] = field(default_factory=frozenset)
    device_type: DeviceType = DeviceType.UNKNOWN
    media_type: MediaType = MediaType.UNKNOWN
    serial: str | None = None
    vendor: str | None = None
    partition_number: int | None = None

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def is_mounted(self) -> bool:
        return self.mountpoint is not None

    @property
    def is_composite_member(self) -> bool:
        """Whether another device (RAID, LVM, dm-crypt) is built on top of this one."""
        return bool(self.holders) or self.filesystem.is_container

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "filesystem": self.filesystem.value,
            "size_bytes": self.size_bytes,
            "uuid": self.uuid,
            "label": self.label,
            "mountpoint": self.mountpoint,
            "is_removable": self.is_removable,
            "is_rotational": self.is_rotational,
            "holders": sorted(self.holders),
            "slaves": sorted(self.slaves),
            "partitions": sorted(self.partitions),
            "device_type": self.device_type.value,
            "media_type": self.media_type.name,
            "serial": self.serial,
            "vendor": self.vendor,
            "partition_number": self.partition_number,
        }


@dataclass
class DeviceInventory:
    """One enumeration snapshot of every block device on the host."""

    devices: list[DeviceInfo] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    errors: list[BlockUtilsError] = field(default_factory=list)

    def __iter__(self) -> Iterator[DeviceInfo]:
        return iter(self.devices)

    def __len__(self) -> int:
        return len(self.devices)

    def __getitem__(self, index: int) -> DeviceInfo:
        return self.devices[index]

    @property
    def total_capacity_bytes(self) -> int:
        return sum(d.size_bytes or 0 for d in self.devices)

    def get_by_path(self, path: str) -> DeviceInfo | None:
        """Find a device by path."""
        for device in self.devices:
            if device.path == path:
                return device
        return None

    def mounted_paths(self) -> list[str]:
        """Get all currently mounted device paths."""
        return [d.path for d in self.devices if d.is_mounted]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "total_devices": len(self.devices),
            "total_capacity_bytes": self.total_capacity_bytes,
            "devices": [d.to_dict() for d in self.devices],
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class FormatOptions:
    """Options for creating a filesystem.

    The first four fields apply to every tool; the rest are tunables that
    only some tools understand. A tunable set for a tool that cannot honour
    it is dropped with a warning on the outcome.
    """

    force: bool = False
    block_size: int | None = None
    label: str | None = None
    extra_options: list[str] = field(default_factory=list)

    # ext2/3/4 and xfs
    inode_size: int | None = None
    # ext2/3/4
    reserved_blocks_percentage: int | None = None
    stride: int | None = None
    # ext2/3/4 and xfs
    stripe_width: int | None = None
    # xfs
    stripe_unit: int | None = None
    agcount: int | None = None
    # btrfs
    metadata_profile: MetadataProfile | None = None
    node_size: int | None = None
    # zfs
    compression: bool | None = None
    # luks
    key_file: str | None = None

    @classmethod
    def defaults_for(cls, kind: FilesystemKind, **overrides: Any) -> FormatOptions:
        """Tuned defaults for a filesystem kind; callers may override any field."""
        presets: dict[FilesystemKind, dict[str, Any]] = {
            FilesystemKind.XFS: {"inode_size": 512, "agcount": 32},
            FilesystemKind.BTRFS: {
                "metadata_profile": MetadataProfile.SINGLE,
                "node_size": 32768,
            },
            FilesystemKind.EXT4: {"inode_size": 512, "reserved_blocks_percentage": 0},
        }
        values = dict(presets.get(kind, {}))
        values.update(overrides)
        return cls(**values)


@dataclass
class FormatRequest:
    """Input to the format orchestrator."""

    device_path: str
    filesystem: FilesystemKind
    options: FormatOptions = field(default_factory=FormatOptions)
    verify_unmounted: bool = True
    dry_run: bool = False


@dataclass
class FormatOutcome:
    """Result of a format request: success with tool output, or a typed error."""

    device_path: str
    filesystem: FilesystemKind
    success: bool
    stdout: str = ""
    error: BlockUtilsError | None = None
    command: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    dry_run: bool = False
    duration_seconds: float = 0.0

    @classmethod
    def succeeded(
        cls,
        request: FormatRequest,
        stdout: str,
        command: list[str],
        warnings: list[str],
        duration_seconds: float = 0.0,
    ) -> FormatOutcome:
        return cls(
            device_path=request.device_path,
            filesystem=request.filesystem,
            success=True,
            stdout=stdout,
            command=command,
            warnings=warnings,
            dry_run=request.dry_run,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def failed(
        cls,
        request: FormatRequest,
        error: BlockUtilsError,
        command: list[str] | None = None,
        warnings: list[str] | None = None,
        duration_seconds: float = 0.0,
    ) -> FormatOutcome:
        return cls(
            device_path=request.device_path,
            filesystem=request.filesystem,
            success=False,
            error=error,
            command=command or [],
            warnings=warnings or [],
            dry_run=request.dry_run,
            duration_seconds=duration_seconds,
        )

    @property
    def stderr(self) -> str:
        """Captured stderr of a failed tool run, empty otherwise."""
        return getattr(self.error, "stderr", "") or ""

    @property
    def command_line(self) -> str:
        return " ".join(self.command)

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_path": self.device_path,
            "filesystem": self.filesystem.value,
            "success": self.success,
            "dry_run": self.dry_run,
            "command": self.command,
            "stdout": self.stdout,
            "warnings": self.warnings,
            "error": self.error.to_dict() if self.error else None,
            "duration_seconds": self.duration_seconds,
        }
