"""
Tests for blockutils.core.aggregator module.
"""

import pytest

from blockutils.core.aggregator import (
    DeviceAggregator,
    parse_bool,
    parse_device_set,
    parse_media_type,
    parse_size,
)
from blockutils.core.classifier import FilesystemClassifier
from blockutils.core.errors import DeviceNotFound
from blockutils.core.models import DeviceType, FilesystemKind, MediaType

from conftest import FakeMountResolver, FakePropertyReader, disk_properties


def make_aggregator(
    reader: FakePropertyReader, mounts: FakeMountResolver | None = None
) -> DeviceAggregator:
    return DeviceAggregator(
        reader,
        mounts or FakeMountResolver(),
        FilesystemClassifier(reader),
    )


class TestParsers:
    """Tests for property parsing helpers."""

    def test_parse_bool(self) -> None:
        assert parse_bool("1") is True
        assert parse_bool(" 1\n") is True
        assert parse_bool("0") is False
        assert parse_bool(None) is False
        assert parse_bool("garbage") is False

    def test_parse_size(self) -> None:
        assert parse_size({"size": "2048"}) == 1048576
        assert parse_size({"size": "0"}) == 0
        assert parse_size({}) is None
        assert parse_size({"size": "lots"}) is None
        assert parse_size({"size": "-1"}) is None

    def test_parse_device_set(self) -> None:
        assert parse_device_set("dm-0 md127") == frozenset({"/dev/dm-0", "/dev/md127"})
        assert parse_device_set("") == frozenset()
        assert parse_device_set(None) == frozenset()
        assert parse_device_set("sdb1", lambda name: f"/host/dev/{name}") == frozenset({"/host/dev/sdb1"})

    @pytest.mark.parametrize(
        "name, properties, expected",
        [
            ("loop0", {}, MediaType.LOOPBACK),
            ("ram1", {}, MediaType.RAM),
            ("md127", {}, MediaType.MD_RAID),
            ("nvme0n1p1", {}, MediaType.NVME),
            ("dm-0", {"DM_NAME": "vg-root"}, MediaType.LVM),
            ("sda", {"ID_ATA_ROTATION_RATE_RPM": "0"}, MediaType.SOLID_STATE),
            ("sdb", {"ID_ATA_ROTATION_RATE_RPM": "7200"}, MediaType.ROTATIONAL),
            ("vda", {"ID_VENDOR": "QEMU"}, MediaType.VIRTUAL),
            ("sdc", {"queue/rotational": "1"}, MediaType.ROTATIONAL),
            ("sdd", {}, MediaType.UNKNOWN),
        ],
    )
    def test_parse_media_type(self, name: str, properties: dict, expected: MediaType) -> None:
        assert parse_media_type(name, properties) == expected


class TestDeviceAggregator:
    """Tests for DeviceAggregator."""

    def test_builds_full_record(self) -> None:
        reader = FakePropertyReader(
            {
                "/dev/sda1": disk_properties(
                    ID_FS_TYPE="ext4",
                    ID_FS_UUID="0a1b2c3d",
                    ID_FS_LABEL="root",
                    ID_SERIAL="Samsung_SSD_870",
                    ID_VENDOR="ATA",
                    ID_PART_ENTRY_NUMBER="1",
                    holders="",
                    slaves="",
                ),
            }
        )
        aggregator = make_aggregator(reader, FakeMountResolver({"/dev/sda1": "/"}))

        device = aggregator.get_device_info("/dev/sda1")

        assert device.path == "/dev/sda1"
        assert device.filesystem == FilesystemKind.EXT4
        assert device.size_bytes == 2048 * 512
        assert device.uuid == "0a1b2c3d"
        assert device.label == "root"
        assert device.mountpoint == "/"
        assert device.is_removable is False
        assert device.is_rotational is False
        assert device.device_type == DeviceType.PARTITION
        assert device.media_type == MediaType.SOLID_STATE
        assert device.serial == "Samsung_SSD_870"
        assert device.partition_number == 1

    def test_missing_optional_properties(self) -> None:
        reader = FakePropertyReader({"/dev/sdb": {}})
        device = make_aggregator(reader).get_device_info("/dev/sdb")

        assert device.size_bytes is None
        assert device.uuid is None
        assert device.label is None
        assert device.mountpoint is None
        assert device.filesystem == FilesystemKind.UNKNOWN
        assert device.device_type == DeviceType.UNKNOWN

    def test_holders_and_slaves(self) -> None:
        reader = FakePropertyReader(
            {
                "/dev/sdc1": disk_properties(holders="md0"),
                "/dev/md0": {"DEVTYPE": "disk", "slaves": "sdc1 sdd1"},
            }
        )
        aggregator = make_aggregator(reader)

        member = aggregator.get_device_info("/dev/sdc1")
        array = aggregator.get_device_info("/dev/md0")

        assert member.holders == frozenset({"/dev/md0"})
        assert member.is_composite_member
        assert array.slaves == frozenset({"/dev/sdc1", "/dev/sdd1"})

    def test_partitions(self) -> None:
        reader = FakePropertyReader(
            {
                "/dev/sdc": {"DEVTYPE": "disk", "partitions": "sdc1 sdc2"},
                "/dev/sdc1": disk_properties(),
            }
        )
        disk = make_aggregator(reader).get_device_info("/dev/sdc")
        assert disk.partitions == frozenset({"/dev/sdc1", "/dev/sdc2"})
        assert not disk.is_composite_member

    def test_alias_is_resolved(self) -> None:
        reader = FakePropertyReader(
            {"/dev/sda1": disk_properties()},
            aliases={"/dev/disk/by-label/root": "/dev/sda1"},
        )
        device = make_aggregator(reader).get_device_info("/dev/disk/by-label/root")
        assert device.path == "/dev/sda1"

    def test_missing_device_raises(self) -> None:
        with pytest.raises(DeviceNotFound) as exc_info:
            make_aggregator(FakePropertyReader()).get_device_info("/dev/sdz")
        assert exc_info.value.device_path == "/dev/sdz"

    def test_enumerate_in_reader_order(self) -> None:
        reader = FakePropertyReader(
            {
                "/dev/sdb": {"DEVTYPE": "disk"},
                "/dev/sda": {"DEVTYPE": "disk"},
                "/dev/sda1": disk_properties(),
            }
        )
        inventory = make_aggregator(reader).enumerate_devices()

        assert [d.path for d in inventory] == ["/dev/sdb", "/dev/sda", "/dev/sda1"]
        assert inventory.errors == []

    def test_enumerate_skips_vanished_device(self) -> None:
        class VanishingReader(FakePropertyReader):
            def list_device_paths(self):
                return ["/dev/sda", "/dev/sdx", "/dev/sdb"]

        reader = VanishingReader({"/dev/sda": {}, "/dev/sdb": {}})
        inventory = make_aggregator(reader).enumerate_devices()

        assert [d.path for d in inventory] == ["/dev/sda", "/dev/sdb"]
        assert len(inventory.errors) == 1
        assert isinstance(inventory.errors[0], DeviceNotFound)
        assert inventory.errors[0].device_path == "/dev/sdx"

    def test_records_are_not_cached(self) -> None:
        reader = FakePropertyReader({"/dev/sda1": disk_properties()})
        mounts = FakeMountResolver()
        aggregator = make_aggregator(reader, mounts)

        assert aggregator.get_device_info("/dev/sda1").mountpoint is None
        mounts.mounts["/dev/sda1"] = "/mnt/data"
        assert aggregator.get_device_info("/dev/sda1").mountpoint == "/mnt/data"
