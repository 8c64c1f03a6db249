"""
Linux property reader.

Reads device properties from sysfs and the udev database, falling back to
`blkid -p` when udev has no record of a device (e.g. inside containers).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from blockutils.core.errors import DeviceNotFound, ToolInvocationFailed
from blockutils.core.logging import get_logger
from blockutils.platform.base import DeviceProperty, PropertyReader
from blockutils.platform.linux.parsers import (
    parse_blkid_udev_output,
    parse_sysfs_uevent,
    parse_udev_database,
)

if TYPE_CHECKING:
    from blockutils.platform.base import ProcessRunner

logger = get_logger(__name__)

# Attributes that live on the parent disk for partitions
PARENT_ATTRIBUTES = (DeviceProperty.REMOVABLE, DeviceProperty.ROTATIONAL)


class SysfsPropertyReader(PropertyReader):
    """Linux implementation of the property reader."""

    BLKID = "blkid"

    def __init__(
        self,
        sys_root: Path | str = "/sys",
        udev_data_root: Path | str = "/run/udev/data",
        dev_root: Path | str = "/dev",
        runner: ProcessRunner | None = None,
        include_partitions: bool = True,
    ) -> None:
        self.class_root = Path(sys_root) / "class" / "block"
        self.udev_data_root = Path(udev_data_root)
        self.dev_root = Path(dev_root)
        self.runner = runner
        self.include_partitions = include_partitions

    def list_device_paths(self) -> Sequence[str]:
        try:
            names = sorted(os.listdir(self.class_root))
        except FileNotFoundError:
            logger.warning("No block device class in sysfs", path=str(self.class_root))
            return []

        paths = []
        for name in names:
            if not self.include_partitions and (self.class_root / name / "partition").exists():
                continue
            paths.append(str(self.dev_root / name))
        return paths

    def canonical_path(self, path: str) -> str:
        """Resolve /dev/disk/by-* and /dev/mapper/* links to the kernel name."""
        if os.path.islink(path):
            resolved = os.path.realpath(path)
            logger.debug("Resolved device link", link=path, device=resolved)
            return resolved
        return path

    def device_path(self, name: str) -> str:
        return name if name.startswith("/") else str(self.dev_root / name)

    def read_properties(self, path: str) -> dict[str, str]:
        name = Path(path).name
        device_dir = self.class_root / name
        if not name or not device_dir.is_dir():
            raise DeviceNotFound(path)

        properties = parse_sysfs_uevent(self._read_attribute(device_dir, "uevent") or "")

        for attribute in (
            DeviceProperty.SIZE,
            DeviceProperty.REMOVABLE,
            DeviceProperty.ROTATIONAL,
            DeviceProperty.PARTITION,
        ):
            value = self._read_attribute(device_dir, attribute)
            if value is not None:
                properties[attribute] = value.strip()

        if (device_dir / "partition").exists():
            # removable and rotational are only published on the whole disk
            parent_dir = device_dir.resolve().parent
            for attribute in PARENT_ATTRIBUTES:
                if attribute not in properties:
                    value = self._read_attribute(parent_dir, attribute)
                    if value is not None:
                        properties[attribute] = value.strip()

        properties[DeviceProperty.HOLDERS] = " ".join(self._list_links(device_dir / "holders"))
        properties[DeviceProperty.SLAVES] = " ".join(self._list_links(device_dir / "slaves"))
        properties[DeviceProperty.PARTITIONS] = " ".join(self._list_partitions(device_dir))

        properties.update(self._read_udev_properties(path, properties))
        return properties

    def read_signature_bytes(self, path: str, offset: int, length: int) -> bytes:
        try:
            with open(path, "rb") as device:
                device.seek(offset)
                return device.read(length)
        except FileNotFoundError as e:
            raise DeviceNotFound(path) from e

    def _read_udev_properties(self, path: str, properties: dict[str, str]) -> dict[str, str]:
        major = properties.get("MAJOR")
        minor = properties.get("MINOR")
        if major and minor:
            record = self._read_attribute(self.udev_data_root, f"b{major}:{minor}")
            if record is not None:
                return parse_udev_database(record)

        if self.runner is None:
            return {}

        # No udev record; probe directly
        try:
            result = self.runner.run(self.BLKID, ["-o", "udev", "-p", path])
        except ToolInvocationFailed as e:
            logger.debug("blkid unavailable", device=path, error=e.message)
            return {}
        # blkid exits 2 when nothing was found
        if not result.success:
            return {}
        return parse_blkid_udev_output(result.stdout)

    @staticmethod
    def _read_attribute(directory: Path, attribute: str) -> str | None:
        try:
            return (directory / attribute).read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None

    @staticmethod
    def _list_links(directory: Path) -> list[str]:
        try:
            return sorted(os.listdir(directory))
        except OSError:
            return []

    @staticmethod
    def _list_partitions(device_dir: Path) -> list[str]:
        """Child partitions are subdirectories carrying a partition attribute."""
        try:
            names = sorted(os.listdir(device_dir))
        except OSError:
            return []
        return [name for name in names if (device_dir / name / "partition").is_file()]
