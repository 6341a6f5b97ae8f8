import sys

import pytest

from gdu.device import (
    BSDDevicesInfoGetter,
    Device,
    LinuxDevicesInfoGetter,
    OtherDevicesInfoGetter,
    default_getter,
    get_nested_mountpoints_paths,
    process_bsd_mounts,
    process_mounts,
    read_mount_output,
    read_mounts_file,
    sort_by_name,
    sort_by_used_size,
)


def test_nested():
    mounts = [
        Device(mount_point="/xxx"),
        Device(mount_point="/xxx/yyy"),
        Device(mount_point="/zzz/yyy"),
    ]
    nested = get_nested_mountpoints_paths("/xxx", mounts)
    assert nested == ["/xxx/yyy"]


def test_sort_by_name():
    devices = [Device(name="/xxx"), Device(name="/xxx/yyy"), Device(name="/zzz/yyy")]
    sort_by_name(devices)
    assert [d.name for d in devices] == ["/zzz/yyy", "/xxx/yyy", "/xxx"]


def test_sort_by_used_size_reversed():
    devices = [
        Device(name="xxx", size=10**12, free=10**3),
        Device(name="yyy", size=10**12, free=10**6),
        Device(name="zzz", size=10**12, free=10**12),
    ]
    sort_by_used_size(devices, reverse=True)
    assert [d.name for d in devices] == ["zzz", "yyy", "xxx"]


def test_sort_by_used_size():
    devices = [
        Device(name="zzz", size=10**12, free=10**12),
        Device(name="xxx", size=10**12, free=10**3),
    ]
    sort_by_used_size(devices)
    assert [d.name for d in devices] == ["xxx", "zzz"]


def test_usage():
    assert Device(size=100, free=30).usage == 70


def test_get_devices_info_fail():
    getter = LinuxDevicesInfoGetter(mounts_path="/xxxyyy")
    with pytest.raises(FileNotFoundError):
        getter.get_devices_info()


def test_get_devices_info_from_file(tmp_path):
    mounts_file = tmp_path / "mounts"
    mounts_file.write_text(
        f"/dev/fake {tmp_path} ext4 rw 0 0\nproc /proc proc rw 0 0\n", encoding="utf-8"
    )
    devices = LinuxDevicesInfoGetter(mounts_path=str(mounts_file)).get_devices_info()
    assert len(devices) == 1
    assert devices[0].mount_point == str(tmp_path)
    assert devices[0].size > 0
    assert devices[0].usage == devices[0].size - devices[0].free


def test_snap_mounts_not_shown():
    mounts = read_mounts_file(
        """/dev/loop4 /var/lib/snapd/snap/core18/1944 squashfs ro,nodev,relatime 0 0
/dev/loop3 /var/lib/snapd/snap/core20/904 squashfs ro,nodev,relatime 0 0
/dev/nvme0n1p1 /boot vfat rw,relatime,fmask=0022,dmask=0022,codepage=437,iocharset=ascii,shortname=mixed,utf8,errors=remount-ro 0 0"""
    )
    devices = process_mounts(mounts, True)
    assert len(devices) == 1
    assert devices[0].mount_point == "/boot"


def test_zfs_mounts_shown():
    mounts = read_mounts_file(
        """rootpool/opt /opt zfs rw,nodev,relatime,xattr,posixacl 0 0
rootpool/usr/local /usr/local zfs rw,nodev,relatime,xattr,posixacl 0 0
rootpool/home/root /root zfs rw,nodev,relatime,xattr,posixacl 0 0
rootpool/usr/games /usr/games zfs rw,nodev,relatime,xattr,posixacl 0 0
rootpool/home /home zfs rw,nodev,relatime,xattr,posixacl 0 0
/dev/loop4 /var/lib/snapd/snap/core18/1944 squashfs ro,nodev,relatime 0 0
/dev/loop3 /var/lib/snapd/snap/core20/904 squashfs ro,nodev,relatime 0 0
/dev/nvme0n1p1 /boot vfat rw,relatime,fmask=0022,dmask=0022,codepage=437,iocharset=ascii,shortname=mixed,utf8,errors=remount-ro 0 0"""
    )
    devices = process_mounts(mounts, True)
    assert len(devices) == 6


def test_nfs_mounts_shown():
    mounts = read_mounts_file(
        """host1:/dir1/ /mnt/dir1 nfs4 rw,nosuid,nodev,noatime,nodiratime,vers=4.2,hard,proto=tcp 0 0
host2:/dir2/ /mnt/dir2 nfs rw,relatime,vers=3,hard,proto=tcp 0 0"""
    )
    devices = process_mounts(mounts, True)
    assert len(devices) == 2
    assert devices[0].name == "host1:/dir1/"
    assert devices[0].mount_point == "/mnt/dir1"


def test_mounts_with_spaces():
    mounts = read_mounts_file(
        [
            "host1:/dir1/ /mnt/dir\\040with\\040spaces nfs4 rw,nosuid,nodev 0 0\n",
            "host2:/dir2/ /mnt/dir2 nfs rw,relatime 0 0\n",
        ]
    )
    devices = process_mounts(mounts, True)
    assert len(devices) == 2
    assert devices[0].name == "host1:/dir1/"
    assert devices[0].mount_point == "/mnt/dir with spaces"


def test_process_mounts_raises_without_ignore():
    mounts = [Device(name="/dev/fake", mount_point="/nonexistent/mount/point", fstype="ext4")]
    with pytest.raises(OSError):
        process_mounts(mounts, False)


BSD_OUTPUT = """/dev/ada0p2 on / (ufs, local, soft-updates)
devfs on /dev (devfs)
tmpfs on /tmp (tmpfs, local)
fdescfs on /dev/fd (fdescfs)
procfs on /proc (procfs, local)
t on /t (zfs, local, nfsv4acls)
t/db on /t/db (zfs, local, nfsv4acls)
t/vm on /t/vm (zfs, local, nfsv4acls)
t/log/pflog on /var/log/pflog (zfs, local, nfsv4acls)
t/log on /t/log (zfs, local, nfsv4acls)
devfs on /compat/linux/dev (devfs)
fdescfs on /compat/linux/dev/fd (fdescfs)
tmpfs on /compat/linux/dev/shm (tmpfs, local)
map -hosts on /net (autofs)
argon:/usr/src on /usr/src (nfs)
argon:/usr/obj on /usr/obj (nfs)"""


def test_bsd_zfs_mounts_shown():
    mounts = read_mount_output(BSD_OUTPUT)
    devices = process_bsd_mounts(mounts, True)
    assert len(devices) == 6


def test_bsd_mounts_with_space():
    mounts = read_mount_output(
        "//share@example.com/volatile on /Users/someone/Mountpoints/volatile (vault.lan) "
        "(smbfs, nodev, nosuid, mounted by someone)"
    )
    assert mounts[0].name == "//share@example.com/volatile"
    assert mounts[0].mount_point == "/Users/someone/Mountpoints/volatile (vault.lan)"
    assert mounts[0].fstype == "smbfs"


def test_bsd_unparsable_output():
    with pytest.raises(ValueError, match="Cannot parse mount output"):
        read_mount_output("this is not a mount line")


def test_bsd_get_devices_info_fail():
    getter = BSDDevicesInfoGetter(mount_cmd="/nonexistent")
    with pytest.raises(FileNotFoundError):
        getter.get_devices_info()


def test_bsd_get_devices_info_from_command(tmp_path):
    script = tmp_path / "mount"
    script.write_text(
        "#!/bin/sh\n"
        f"echo '/dev/fake on {tmp_path} (ufs, local)'\n"
        "echo 'devfs on /dev (devfs)'\n",
        encoding="utf-8",
    )
    script.chmod(0o755)
    getter = BSDDevicesInfoGetter(mount_cmd=str(script))
    mounts = getter.get_mounts()
    assert [m.fstype for m in mounts] == ["ufs", "devfs"]
    devices = getter.get_devices_info()
    assert len(devices) == 1
    assert devices[0].mount_point == str(tmp_path)
    assert devices[0].size > 0


def test_other_getter_fails():
    getter = OtherDevicesInfoGetter()
    with pytest.raises(OSError, match="listing devices"):
        getter.get_devices_info()
    with pytest.raises(OSError, match="listing mount points"):
        getter.get_mounts()


@pytest.mark.parametrize(
    "platform,expected",
    [
        ("linux", LinuxDevicesInfoGetter(mounts_path="/proc/mounts")),
        ("darwin", BSDDevicesInfoGetter(mount_cmd="/sbin/mount")),
        ("freebsd13", BSDDevicesInfoGetter(mount_cmd="/sbin/mount")),
        ("win32", OtherDevicesInfoGetter()),
    ],
)
def test_default_getter(monkeypatch, platform, expected):
    monkeypatch.setattr(sys, "platform", platform)
    assert default_getter() == expected