"""
Linux output parsers.

Parsers for sysfs uevent files, the udev database and blkid.
"""

from __future__ import annotations


def parse_key_value_lines(output: str) -> dict[str, str]:
    """Parse KEY=VALUE lines, ignoring anything else."""
    result: dict[str, str] = {}
    for line in output.splitlines():
        line = line.strip()
        if not line or "=" not in line:
            continue
        key, value = line.split("=", 1)
        result[key.strip()] = value.strip()
    return result


def parse_sysfs_uevent(output: str) -> dict[str, str]:
    """
    Parse a sysfs uevent file.

    Example input:
    MAJOR=8
    MINOR=1
    DEVNAME=sda1
    DEVTYPE=partition
    PARTN=1
    """
    return parse_key_value_lines(output)


def parse_udev_database(output: str) -> dict[str, str]:
    """
    Parse a udev database entry (/run/udev/data/b<major>:<minor>).

    Only property lines are kept:
    S:disk/by-uuid/0a1b...
    E:ID_FS_TYPE=ext4
    E:ID_FS_UUID=0a1b...
    """
    result: dict[str, str] = {}
    for line in output.splitlines():
        if not line.startswith("E:"):
            continue
        key, sep, value = line[2:].partition("=")
        if sep and key:
            result[key] = value
    return result


def parse_blkid_udev_output(output: str) -> dict[str, str]:
    """
    Parse `blkid -o udev -p` output.

    Example input:
    ID_FS_UUID=0a1b...
    ID_FS_TYPE=ext4
    ID_FS_USAGE=filesystem
    """
    return {k: v for k, v in parse_key_value_lines(output).items() if k.startswith("ID_")}

