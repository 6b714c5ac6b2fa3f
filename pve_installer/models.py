"""Data models for pve-installer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from pve_installer.constants import DISK_IMAGE_SUFFIXES
from pve_installer.utils import format_iec


class ReleaseKind(str, Enum):
    RELEASE = "release"
    SNAPSHOT = "snapshot"


@dataclass(frozen=True)
class ReleaseEntry:
    version: str
    kind: ReleaseKind
    download_url: str

    def __post_init__(self):
        if not self.download_url.lower().endswith(DISK_IMAGE_SUFFIXES):
            raise ValueError(f"Not a disk image URL: {self.download_url}")

    @property
    def filename(self) -> str:
        return self.download_url.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class StorageTarget:
    identifier: str
    backend_type: str
    free_bytes: int

    @property
    def free_label(self) -> str:
        return format_iec(self.free_bytes)


@dataclass(frozen=True)
class UsbCandidate:
    vendor_product_id: str  # "vvvv:pppp"
    description: str


@dataclass
class ProvisioningSession:
    release: ReleaseEntry
    storage: StorageTarget
    usb: Optional[UsbCandidate]
    work_dir: Path
    vm_id: Optional[int] = None


@dataclass
class InstallerConfig:
    github_repo: str
    github_token: Optional[str]
    release_count: int
    log_file: Path
    disk_size: str
    vcpus: int
    bridge: str
    description: str
    ovf_name: str
    pve_config_dir: Path
    usb_allowlist: Dict[str, str] = field(default_factory=dict)
