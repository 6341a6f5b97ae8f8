"""Mounted devices and their disk usage."""

from __future__ import annotations

import logging
import os
import re
import subprocess
import sys
from dataclasses import dataclass
from typing import Iterable, List, NoReturn, Protocol, Union

log = logging.getLogger(__name__)

_MOUNT_LINE = re.compile(r"^(.*) on (/.*) \(([^)]+)\)$")

Lines = Union[str, Iterable[str]]


@dataclass(eq=False)
class Device:
    """A mounted file system."""

    name: str = ""
    mount_point: str = ""
    fstype: str = ""
    size: int = 0
    free: int = 0

    @property
    def usage(self) -> int:
        """Used space of the device."""
        return self.size - self.free


class DevicesInfoGetter(Protocol):
    """Source of mount points and device usage."""

    def get_mounts(self) -> List[Device]:  # pragma: no cover - protocol
        ...

    def get_devices_info(self) -> List[Device]:  # pragma: no cover - protocol
        ...


def _lines(lines: Lines) -> Iterable[str]:
    if isinstance(lines, str):
        return lines.splitlines()
    return (line.rstrip("\r\n") for line in lines)


def _fill_usage(mount: Device, ignore_errors: bool) -> None:
    statvfs = getattr(os, "statvfs", None)
    try:
        if statvfs is None:
            raise OSError(f"cannot read usage of {mount.mount_point} on this platform")
        info = statvfs(mount.mount_point)
    except OSError:
        if not ignore_errors:
            raise
        mount.size = 0
        mount.free = 0
        return
    mount.size = info.f_bsize * info.f_blocks
    mount.free = info.f_bsize * info.f_bavail


def _unescape(value: str) -> str:
    return value.replace("\\040", " ")


def _unsupported(what: str) -> NoReturn:
    log.debug("Listing %s is not available on %s", what, sys.platform)
    raise OSError(f"Only Linux platform is supported for listing {what}")


def read_mounts_file(lines: Lines) -> List[Device]:
    """Parse lines in the format of /proc/mounts."""
    mounts = []
    for line in _lines(lines):
        parts = line.split()
        if not parts:
            continue
        if len(parts) < 3:
            raise ValueError(f"Cannot parse mounts line: {line!r}")
        mounts.append(Device(name=parts[0], mount_point=_unescape(parts[1]), fstype=parts[2]))
    return mounts


def process_mounts(mounts: Iterable[Device], ignore_errors: bool = False) -> List[Device]:
    """Keep real devices of a Linux mount list and fill in their usage."""
    devices = []
    for mount in mounts:
        if "/snap/" in mount.mount_point:
            continue
        if mount.name.startswith("/dev") or mount.fstype in ("zfs", "nfs", "nfs4"):
            _fill_usage(mount, ignore_errors)
            devices.append(mount)
    return devices


def read_mount_output(lines: Lines) -> List[Device]:
    """Parse the output of the BSD ``mount`` command."""
    mounts = []
    for line in _lines(lines):
        match = _MOUNT_LINE.match(line)
        if match is None:
            raise ValueError("Cannot parse mount output")
        name, mount_point, options = match.groups()
        fstype = options.split(",")[0].strip()
        mounts.append(Device(name=name, mount_point=mount_point, fstype=fstype))
    return mounts


def process_bsd_mounts(mounts: Iterable[Device], ignore_errors: bool = False) -> List[Device]:
    """Keep real devices of a BSD mount list and fill in their usage."""
    devices = []
    for mount in mounts:
        if mount.name.startswith("/dev") or mount.fstype == "zfs":
            _fill_usage(mount, ignore_errors)
            devices.append(mount)
    return devices


@dataclass(frozen=True)
class LinuxDevicesInfoGetter:
    """Reads devices from a mounts table file."""

    mounts_path: str = "/proc/mounts"

    def get_mounts(self) -> List[Device]:
        """Return all mounted file systems."""
        with open(self.mounts_path, encoding="utf-8", errors="surrogateescape") as file:
            return read_mounts_file(file)

    def get_devices_info(self) -> List[Device]:
        """Return mounted devices with their usage."""
        return process_mounts(self.get_mounts(), False)


@dataclass(frozen=True)
class BSDDevicesInfoGetter:
    """Reads devices from the output of the ``mount`` command."""

    mount_cmd: str = "/sbin/mount"

    def get_mounts(self) -> List[Device]:
        """Return all mounted file systems."""
        result = subprocess.run([self.mount_cmd], capture_output=True, check=True)
        return read_mount_output(result.stdout.decode("utf-8", "surrogateescape"))

    def get_devices_info(self) -> List[Device]:
        """Return mounted devices with their usage."""
        return process_bsd_mounts(self.get_mounts(), False)


@dataclass(frozen=True)
class OtherDevicesInfoGetter:
    """Getter for platforms where devices cannot be listed."""

    def get_mounts(self) -> List[Device]:
        """Raise OSError: mount points cannot be listed here."""
        return _unsupported("mount points")

    def get_devices_info(self) -> List[Device]:
        """Raise OSError: devices cannot be listed here."""
        return _unsupported("devices")


def default_getter() -> DevicesInfoGetter:
    """Return the getter suitable for the running platform."""
    platform = sys.platform
    if platform.startswith("linux"):
        return LinuxDevicesInfoGetter()
    if platform.startswith(("darwin", "freebsd", "netbsd", "openbsd")):
        return BSDDevicesInfoGetter()
    return OtherDevicesInfoGetter()


def get_nested_mountpoints_paths(path: str, mounts: Iterable[Device]) -> List[str]:
    """Return mount points lying under ``path``."""
    return [
        mount.mount_point
        for mount in mounts
        if mount.mount_point.startswith(path) and mount.mount_point != path
    ]


def sort_by_used_size(devices: List[Device], reverse: bool = False) -> None:
    """Sort in place, most used first unless reversed."""
    devices.sort(key=lambda device: device.usage, reverse=not reverse)


def sort_by_name(devices: List[Device], reverse: bool = False) -> None:
    """Sort in place by name, descending unless reversed."""
    devices.sort(key=lambda device: device.name, reverse=not reverse)