"""
blockutils Linux adapters.

- sysfs and the udev database for device properties
- psutil for the mount table
- subprocess for mkfs.*, mkswap, zpool, cryptsetup and pvcreate
"""

from blockutils.platform.linux.mounts import PsutilMountResolver
from blockutils.platform.linux.parsers import (
    parse_sysfs_uevent,
    parse_udev_database,
)
from blockutils.platform.linux.reader import SysfsPropertyReader
from blockutils.platform.linux.runner import SubprocessRunner

__all__ = [
    "PsutilMountResolver",
    "SubprocessRunner",
    "SysfsPropertyReader",
    "parse_sysfs_uevent",
    "parse_udev_database",
]
