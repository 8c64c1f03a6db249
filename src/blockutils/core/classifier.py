"""
blockutils filesystem classifier.

Maps raw device properties, and failing that an on-disk magic-number
probe, to a FilesystemKind. Encrypted containers are recognized first,
composite (LVM) membership second and plain filesystems last, so content
that merely looks like a filesystem inside a container is never reported.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping

from blockutils.core.config import ClassifierConfig
from blockutils.core.errors import DeviceNotFound
from blockutils.core.logging import get_logger
from blockutils.core.models import FilesystemKind
from blockutils.platform.base import DeviceProperty

if TYPE_CHECKING:
    from blockutils.platform.base import PropertyReader

logger = get_logger(__name__)

# Enough of the device head to cover every signature below, including the
# first ZFS uberblock at 128 KiB.
PROBE_LENGTH = 0x21000

EXT_MAGIC_OFFSET = 0x438
EXT_MAGIC = b"\x53\xef"
EXT_FEATURES_OFFSET = 0x45C  # compat, incompat, ro_compat

EXT_COMPAT_HAS_JOURNAL = 0x0004
EXT_INCOMPAT_EXT4 = 0x0040 | 0x0080 | 0x0200  # extents, 64bit, flex_bg
EXT_RO_COMPAT_EXT4 = 0x0008 | 0x0010 | 0x0020 | 0x0040 | 0x0400

LVM_LABEL_ID = b"LABELONE"
LVM_LABEL_TYPE = b"LVM2 001"
LVM_LABEL_TYPE_OFFSET = 0x18
LVM_LABEL_SECTORS = 4


@dataclass(frozen=True)
class Signature:
    """A magic byte string at a fixed offset from the start of the device."""

    kind: FilesystemKind
    offset: int
    magic: bytes
    description: str

    def matches(self, data: bytes) -> bool:
        end = self.offset + len(self.magic)
        return len(data) >= end and data[self.offset : end] == self.magic


ENCRYPTED_SIGNATURES: tuple[Signature, ...] = (
    Signature(FilesystemKind.LUKS_ENCRYPTED, 0, b"LUKS\xba\xbe", "LUKS header"),
    Signature(FilesystemKind.LUKS_ENCRYPTED, 0x4000, b"SKUL\xba\xbe", "LUKS2 secondary header"),
)

FILESYSTEM_SIGNATURES: tuple[Signature, ...] = (
    Signature(FilesystemKind.XFS, 0, b"XFSB", "XFS superblock"),
    Signature(FilesystemKind.BTRFS, 0x10040, b"_BHRfS_M", "Btrfs superblock"),
    Signature(FilesystemKind.NTFS, 3, b"NTFS    ", "NTFS boot sector"),
    Signature(FilesystemKind.VFAT, 0x52, b"FAT32   ", "FAT32 boot sector"),
    Signature(FilesystemKind.VFAT, 0x36, b"FAT16   ", "FAT16 boot sector"),
    Signature(FilesystemKind.VFAT, 0x36, b"FAT12   ", "FAT12 boot sector"),
    Signature(FilesystemKind.SWAP, 4096 - 10, b"SWAPSPACE2", "swap v1, 4K pages"),
    Signature(FilesystemKind.SWAP, 4096 - 10, b"SWAP-SPACE", "swap v0, 4K pages"),
    Signature(FilesystemKind.SWAP, 8192 - 10, b"SWAPSPACE2", "swap v1, 8K pages"),
    Signature(FilesystemKind.SWAP, 16384 - 10, b"SWAPSPACE2", "swap v1, 16K pages"),
    Signature(FilesystemKind.SWAP, 65536 - 10, b"SWAPSPACE2", "swap v1, 64K pages"),
    Signature(FilesystemKind.ZFS, 0x20000, b"\x0c\xb1\xba\x00\x00\x00\x00\x00", "ZFS uberblock"),
    Signature(FilesystemKind.ZFS, 0x20000, b"\x00\x00\x00\x00\x00\xba\xb1\x0c", "ZFS uberblock"),
)

ENCRYPTED_TYPE_NAMES = frozenset({"crypto_luks", "luks_encrypted", "luks", "luks1", "luks2"})
COMPOSITE_TYPE_NAMES = frozenset({"lvm2_member", "lvm_member", "lvm1_member", "lvm", "lvm2"})


def ext_kind_from_superblock(data: bytes) -> FilesystemKind | None:
    """Resolve the ext family member from superblock feature words."""
    if len(data) < EXT_FEATURES_OFFSET + 12:
        return None
    if data[EXT_MAGIC_OFFSET : EXT_MAGIC_OFFSET + 2] != EXT_MAGIC:
        return None

    compat, incompat, ro_compat = struct.unpack_from("<III", data, EXT_FEATURES_OFFSET)
    if incompat & EXT_INCOMPAT_EXT4 or ro_compat & EXT_RO_COMPAT_EXT4:
        return FilesystemKind.EXT4
    if compat & EXT_COMPAT_HAS_JOURNAL:
        return FilesystemKind.EXT3
    return FilesystemKind.EXT2


def has_lvm_label(data: bytes) -> bool:
    """LVM2 writes its label into one of the first four sectors."""
    for sector in range(LVM_LABEL_SECTORS):
        start = sector * DeviceProperty.SECTOR_SIZE
        type_start = start + LVM_LABEL_TYPE_OFFSET
        if len(data) < type_start + len(LVM_LABEL_TYPE):
            return False
        if (
            data[start : start + len(LVM_LABEL_ID)] == LVM_LABEL_ID
            and data[type_start : type_start + len(LVM_LABEL_TYPE)] == LVM_LABEL_TYPE
        ):
            return True
    return False


def match_signature(data: bytes) -> FilesystemKind:
    """Classify a device head, container checks first."""
    for signature in ENCRYPTED_SIGNATURES:
        if signature.matches(data):
            return signature.kind

    if has_lvm_label(data):
        return FilesystemKind.LVM_MEMBER

    ext_kind = ext_kind_from_superblock(data)
    if ext_kind is not None:
        return ext_kind

    for signature in FILESYSTEM_SIGNATURES:
        if signature.matches(data):
            return signature.kind

    return FilesystemKind.UNKNOWN


def kind_from_properties(properties: Mapping[str, str]) -> FilesystemKind | None:
    """
    Classify from the filesystem-type property alone.
    Returns None when the device reports no type at all.
    """
    raw_type = properties.get(DeviceProperty.FS_TYPE)
    if not isinstance(raw_type, str) or not raw_type.strip():
        return None

    fs_type = raw_type.strip().lower()

    if fs_type in ENCRYPTED_TYPE_NAMES:
        return FilesystemKind.LUKS_ENCRYPTED

    usage = properties.get(DeviceProperty.FS_USAGE)
    if isinstance(usage, str) and usage.strip().lower() == "crypto":
        # Some other encryption format (BitLocker, TrueCrypt, ...)
        return FilesystemKind.UNKNOWN

    if fs_type in COMPOSITE_TYPE_NAMES:
        return FilesystemKind.LVM_MEMBER

    return FilesystemKind.from_string(fs_type)


class FilesystemClassifier:
    """Determines what a block device holds."""

    def __init__(
        self,
        reader: PropertyReader,
        config: ClassifierConfig | None = None,
    ) -> None:
        self.reader = reader
        self.config = config or ClassifierConfig()

    def classify(
        self,
        device_path: str,
        raw_properties: Mapping[str, str] | None = None,
    ) -> FilesystemKind:
        """
        Classify a device. Properties are read from the reader when not given,
        which raises DeviceNotFound for a missing device.
        """
        if raw_properties is None:
            raw_properties = self.reader.read_properties(device_path)

        from_property = kind_from_properties(raw_properties)

        if from_property is None:
            if not self.config.signature_probe_enabled:
                return FilesystemKind.UNKNOWN
            return self.probe_signature(device_path)

        if from_property is FilesystemKind.UNKNOWN:
            logger.debug(
                "Unrecognized filesystem type property",
                device=device_path,
                fs_type=raw_properties.get(DeviceProperty.FS_TYPE),
            )

        if self.config.cross_check_signatures and self.config.signature_probe_enabled:
            probed = self.probe_signature(device_path)
            if probed is not FilesystemKind.UNKNOWN and probed is not from_property:
                logger.warning(
                    "Filesystem type property disagrees with on-disk signature",
                    device=device_path,
                    property_kind=from_property.value,
                    signature_kind=probed.value,
                )

        return from_property

    def probe_signature(self, device_path: str) -> FilesystemKind:
        """Read the device head and match known magic numbers."""
        try:
            data = self.reader.read_signature_bytes(device_path, 0, PROBE_LENGTH)
        except DeviceNotFound:
            logger.warning("Device vanished during signature probe", device=device_path)
            return FilesystemKind.UNKNOWN
        except OSError as e:
            logger.warning(
                "Signature probe failed",
                device=device_path,
                error=str(e),
            )
            return FilesystemKind.UNKNOWN

        kind = match_signature(data)
        logger.debug("Signature probe", device=device_path, kind=kind.value, bytes_read=len(data))
        return kind
