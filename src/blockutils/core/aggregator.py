"""
blockutils device metadata aggregator.

Combines raw properties, classifier output and mount lookups into one
DeviceInfo per device. Records are rebuilt on every call.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Callable, Mapping

from blockutils.core.errors import DeviceNotFound
from blockutils.core.logging import get_logger
from blockutils.core.models import (
    DeviceInfo,
    DeviceInventory,
    DeviceType,
    MediaType,
)
from blockutils.platform.base import DeviceProperty

if TYPE_CHECKING:
    from blockutils.core.classifier import FilesystemClassifier
    from blockutils.platform.base import MountResolver, PropertyReader

logger = get_logger(__name__)

LOOP_RE = re.compile(r"^loop\d+$")
RAM_RE = re.compile(r"^ram\d+$")
MD_RE = re.compile(r"^md\d+")

TRUE_VALUES = ("1", "true", "yes", "y")


def parse_bool(value: str | None) -> bool:
    """Best-effort boolean from a sysfs or udev flag."""
    if not isinstance(value, str):
        return False
    return value.strip().lower() in TRUE_VALUES


def parse_int(value: str | None) -> int | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return None
    return parsed if parsed >= 0 else None


def parse_size(properties: Mapping[str, str]) -> int | None:
    """Size in bytes from the sysfs sector count; None when absent or malformed."""
    sectors = parse_int(properties.get(DeviceProperty.SIZE))
    if sectors is None:
        return None
    return sectors * DeviceProperty.SECTOR_SIZE


def parse_device_set(
    value: str | None,
    to_path: Callable[[str], str] | None = None,
) -> frozenset[str]:
    """Turn a whitespace separated list of device names into paths (/dev/<name> by default)."""
    if not isinstance(value, str):
        return frozenset()
    to_path = to_path or (lambda name: name if name.startswith("/dev/") else f"/dev/{name}")
    return frozenset(to_path(name) for name in value.split())


def optional_text(value: str | None) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def parse_media_type(name: str, properties: Mapping[str, str]) -> MediaType:
    """Determine media type from device name and properties."""
    if LOOP_RE.match(name):
        return MediaType.LOOPBACK
    if RAM_RE.match(name):
        return MediaType.RAM
    if MD_RE.match(name):
        return MediaType.MD_RAID
    if "nvme" in name:
        return MediaType.NVME
    if optional_text(properties.get(DeviceProperty.DM_NAME)):
        return MediaType.LVM

    rotation = optional_text(properties.get(DeviceProperty.ROTATION_RATE))
    if rotation is not None:
        return MediaType.SOLID_STATE if rotation == "0" else MediaType.ROTATIONAL

    if optional_text(properties.get(DeviceProperty.VENDOR)) == "QEMU":
        return MediaType.VIRTUAL

    rotational = optional_text(properties.get(DeviceProperty.ROTATIONAL))
    if rotational == "0":
        return MediaType.SOLID_STATE
    if rotational == "1":
        return MediaType.ROTATIONAL

    return MediaType.UNKNOWN


def parse_partition_number(properties: Mapping[str, str]) -> int | None:
    number = parse_int(properties.get(DeviceProperty.PART_ENTRY_NUMBER))
    if number is None:
        number = parse_int(properties.get(DeviceProperty.PARTITION))
    return number


class DeviceAggregator:
    """Builds DeviceInfo records from the platform adapters."""

    def __init__(
        self,
        reader: PropertyReader,
        mount_resolver: MountResolver,
        classifier: FilesystemClassifier,
    ) -> None:
        self.reader = reader
        self.mount_resolver = mount_resolver
        self.classifier = classifier

    def enumerate_devices(self) -> DeviceInventory:
        """
        Snapshot every device in the reader's order.
        Devices that vanish mid-enumeration are skipped and recorded in errors.
        """
        inventory = DeviceInventory()

        for path in self.reader.list_device_paths():
            try:
                inventory.devices.append(self._build(path))
            except DeviceNotFound as e:
                logger.info("Device disappeared during enumeration", device=path)
                inventory.errors.append(e)

        logger.debug(
            "Enumerated devices",
            count=len(inventory.devices),
            skipped=len(inventory.errors),
        )
        return inventory

    def get_device_info(self, path: str) -> DeviceInfo:
        """Get information about one device. Raises DeviceNotFound."""
        return self._build(self.reader.canonical_path(path))

    def _build(self, path: str) -> DeviceInfo:
        properties = self.reader.read_properties(path)
        name = path.rsplit("/", 1)[-1]
        to_path = self.reader.device_path

        filesystem = self.classifier.classify(path, properties)
        media_type = parse_media_type(name, properties)
        is_rotational = media_type is MediaType.ROTATIONAL or parse_bool(
            properties.get(DeviceProperty.ROTATIONAL)
        )

        return DeviceInfo(
            path=path,
            filesystem=filesystem,
            size_bytes=parse_size(properties),
            uuid=optional_text(properties.get(DeviceProperty.FS_UUID)),
            label=optional_text(properties.get(DeviceProperty.FS_LABEL)),
            mountpoint=self.mount_resolver.mountpoint_of(path),
            is_removable=parse_bool(properties.get(DeviceProperty.REMOVABLE)),
            is_rotational=is_rotational,
            holders=parse_device_set(properties.get(DeviceProperty.HOLDERS), to_path),
            slaves=parse_device_set(properties.get(DeviceProperty.SLAVES), to_path),
            partitions=parse_device_set(properties.get(DeviceProperty.PARTITIONS), to_path),
            device_type=DeviceType.from_string(properties.get(DeviceProperty.DEVTYPE)),
            media_type=media_type,
            serial=optional_text(properties.get(DeviceProperty.SERIAL)),
            vendor=optional_text(properties.get(DeviceProperty.VENDOR)),
            partition_number=parse_partition_number(properties),
        )
