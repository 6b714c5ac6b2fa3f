"""Shared test fixtures."""

from __future__ import annotations

import io
import tarfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from pve_installer.constants import DEFAULT_USB_ALLOWLIST
from pve_installer.hypervisor import ProxmoxHost
from pve_installer.models import InstallerConfig, ReleaseEntry, ReleaseKind, StorageTarget
from pve_installer.utils import configure_log_file


@pytest.fixture(autouse=True)
def _reset_log_file():
    yield
    configure_log_file(None)


@pytest.fixture
def default_config(tmp_path) -> InstallerConfig:
    """Return an InstallerConfig with the stock defaults and paths under tmp_path."""
    pve_dir = tmp_path / "etc-pve"
    pve_dir.mkdir()
    return InstallerConfig(
        github_repo="jens-maus/RaspberryMatic",
        github_token=None,
        release_count=5,
        log_file=tmp_path / "install-proxmox.log",
        disk_size="64G",
        vcpus=2,
        bridge="vmbr0",
        description="RaspberryMatic CCU",
        ovf_name="RaspberryMatic.ovf",
        pve_config_dir=pve_dir,
        usb_allowlist=dict(DEFAULT_USB_ALLOWLIST),
    )


@pytest.fixture
def stable_release() -> ReleaseEntry:
    return ReleaseEntry(
        version="3.75.6.20240316",
        kind=ReleaseKind.RELEASE,
        download_url="https://example.com/download/RaspberryMatic-3.75.6.20240316.ova",
    )


@pytest.fixture
def snapshot_release() -> ReleaseEntry:
    return ReleaseEntry(
        version="3.75.7.20240401",
        kind=ReleaseKind.SNAPSHOT,
        download_url="https://example.com/download/RaspberryMatic-3.75.7.20240401.ova",
    )


@pytest.fixture
def lvm_storage() -> StorageTarget:
    return StorageTarget(identifier="local-lvm", backend_type="lvmthin", free_bytes=1048576 * 1024)


@pytest.fixture
def fake_host() -> MagicMock:
    host = MagicMock(spec=ProxmoxHost)
    host.next_vmid.return_value = 100
    host.vm_config.return_value = "boot: order=sata0\nsata0: local-lvm:vm-100-disk-0,size=3G\nmemory: 1024\n"
    host.vm_exists.return_value = True
    host.vm_status.return_value = "stopped"
    return host


def _write_ova(destination: Path, ovf_name: str = "RaspberryMatic.ovf") -> None:
    """Write a minimal tar-format OVA containing ``ovf_name`` and a disk."""
    with tarfile.open(destination, "w") as tar:
        for name, payload in ((ovf_name, b"<Envelope/>"), ("RaspberryMatic-disk1.vmdk", b"\0" * 512)):
            info = tarfile.TarInfo(name)
            info.size = len(payload)
            tar.addfile(info, io.BytesIO(payload))


@pytest.fixture
def make_ova():
    return _write_ova


@pytest.fixture
def ova_download():
    """Stand-in for download_file that writes a valid OVA and records where it went."""
    destinations = []

    def _download(url, destination, label="Downloading"):
        destinations.append(destination)
        _write_ova(destination)

    _download.destinations = destinations
    return _download


_PARSE_ENV_VARS = [
    "GITHUB_REPO",
    "GITHUB_TOKEN",
    "RELEASE_COUNT",
    "LOG_FILE",
    "DISK_SIZE",
    "VM_CPUS",
    "VM_BRIDGE",
    "VM_DESCRIPTION",
    "OVF_NAME",
    "USB_DEVICES_CONFIG",
    "PVE_CONFIG_DIR",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Clear all environment variables that parse_env() reads."""
    for key in _PARSE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("pve_installer.config.DEFAULT_USB_CONFIG_PATH", tmp_path / "no-usb-devices.yaml")
