"""VM provisioning workflow: download, import and configure the appliance."""

from __future__ import annotations

import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from pve_installer.constants import FILE_BACKED_STORAGE_TYPES, FILE_IMPORT_FORMAT, SYSTEM_DISK
from pve_installer.exceptions import CommandFailed, ExtractFailed, ImportFailed
from pve_installer.hypervisor import ProxmoxHost, parse_disk_volume
from pve_installer.models import InstallerConfig, ProvisioningSession
from pve_installer.utils import download_file, extract_archive, log

Step = Tuple[str, Callable[[ProvisioningSession], None]]


@contextmanager
def workspace(prefix: str = "pve-installer-") -> Iterator[Path]:
    """Temporary working directory, entered for the duration of the block and always removed."""
    previous = Path.cwd()
    work_dir = Path(tempfile.mkdtemp(prefix=prefix))
    os.chdir(work_dir)
    try:
        yield work_dir
    finally:
        os.chdir(previous)
        shutil.rmtree(work_dir, ignore_errors=True)
        log("DEBUG", f"Removed work directory {work_dir}")


def import_format(backend_type: str) -> Optional[str]:
    """File-based storages need an explicit disk format; block storages pick their own."""
    if backend_type in FILE_BACKED_STORAGE_TYPES:
        return FILE_IMPORT_FORMAT
    return None


def vm_settings(cfg: InstallerConfig, disk_volume: str) -> List[str]:
    return [
        "--acpi", "1",
        "--vcpus", str(cfg.vcpus),
        "--numa", "1",
        "--agent", "1,fstrim_cloned_disks=1,type=virtio",
        "--hotplug", "network,disk,usb,cpu,memory",
        "--description", cfg.description,
        "--net0", f"virtio,bridge={cfg.bridge},firewall=1",
        "--onboot", "1",
        "--tablet", "0",
        "--ostype", "l26",
        "--scsihw", "virtio-scsi-single",
        "--delete", "sata0",
        f"--{SYSTEM_DISK}", f"{disk_volume},discard=on,iothread=1",
    ]


def usb_option(vendor_product_id: str) -> str:
    return f"host={vendor_product_id},usb3=1"


class Provisioner:
    def __init__(self, cfg: InstallerConfig, host: ProxmoxHost) -> None:
        self.cfg = cfg
        self.host = host
        self.archive: Optional[Path] = None
        self.manifest: Optional[Path] = None
        self.disk_volume: Optional[str] = None

    def steps(self) -> List[Step]:
        return [
            ("allocate", self._allocate),
            ("download", self._download),
            ("extract", self._extract),
            ("import", self._import),
            ("discover-disk", self._discover_disk),
            ("configure", self._configure),
            ("boot-order", self._set_boot_order),
            ("resize", self._resize),
            ("usb", self._attach_usb),
        ]

    def provision(self, session: ProvisioningSession) -> int:
        for name, step in self.steps():
            log("DEBUG", f"Provisioning step: {name}")
            step(session)
        assert session.vm_id is not None
        return session.vm_id

    def _allocate(self, session: ProvisioningSession) -> None:
        session.vm_id = self.host.next_vmid()
        log("INFO", f"VM ID is {session.vm_id}.")

    def _download(self, session: ProvisioningSession) -> None:
        self.archive = session.work_dir / session.release.filename
        download_file(session.release.download_url, self.archive, label="Downloading disk image")

    def _extract(self, session: ProvisioningSession) -> None:
        assert self.archive is not None
        log("INFO", "Extracting disk image...")
        extract_archive(self.archive, session.work_dir)
        manifest = session.work_dir / self.cfg.ovf_name
        if not manifest.is_file():
            raise ExtractFailed(f"{self.cfg.ovf_name} not found in {self.archive.name}")
        self.manifest = manifest

    def _import(self, session: ProvisioningSession) -> None:
        assert self.manifest is not None and session.vm_id is not None
        log("INFO", "Importing OVA...")
        disk_format = import_format(session.storage.backend_type)
        try:
            self.host.import_ovf(session.vm_id, self.manifest, session.storage.identifier, disk_format)
        except CommandFailed as exc:
            raise ImportFailed(
                f"Import into storage '{session.storage.identifier}' failed", exit_code=exc.exit_code
            ) from exc

    def _discover_disk(self, session: ProvisioningSession) -> None:
        assert session.vm_id is not None
        volume = parse_disk_volume(self.host.vm_config(session.vm_id))
        if volume is None:
            raise ImportFailed(f"No imported disk found in configuration of VM {session.vm_id}")
        log("DEBUG", f"Imported disk is {volume}")
        self.disk_volume = volume

    def _configure(self, session: ProvisioningSession) -> None:
        assert session.vm_id is not None and self.disk_volume is not None
        log("INFO", "Modifying VM settings...")
        self.host.set_options(session.vm_id, *vm_settings(self.cfg, self.disk_volume))

    def _set_boot_order(self, session: ProvisioningSession) -> None:
        assert session.vm_id is not None
        self.host.set_options(session.vm_id, "--boot", f"order={SYSTEM_DISK}")

    def _resize(self, session: ProvisioningSession) -> None:
        assert session.vm_id is not None
        log("INFO", "Resizing disk...")
        self.host.resize_disk(session.vm_id, SYSTEM_DISK, self.cfg.disk_size)

    def _attach_usb(self, session: ProvisioningSession) -> None:
        if session.usb is None:
            return
        assert session.vm_id is not None
        log("INFO", f"Setting {session.usb.vendor_product_id} as usb0...")
        self.host.set_options(session.vm_id, "--usb0", usb_option(session.usb.vendor_product_id))
