"""Thin wrapper around the Proxmox VE command line tools."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pve_installer.constants import VM_DISK_KEY_RE
from pve_installer.exceptions import InstallerError
from pve_installer.models import StorageTarget
from pve_installer.utils import log, run


def parse_storage_status(output: str) -> List[StorageTarget]:
    """Parse ``pvesm status`` output (Name Type Status Total Used Available %)."""
    targets: List[StorageTarget] = []
    for line in output.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 6:
            continue
        try:
            available_kib = int(fields[5])
        except ValueError:
            log("DEBUG", f"Skipping unparsable storage line: {line}")
            continue
        targets.append(
            StorageTarget(identifier=fields[0], backend_type=fields[1], free_bytes=available_kib * 1024)
        )
    return targets


def parse_disk_volume(config_output: str) -> Optional[str]:
    """Return the volume id of the first SATA/SCSI disk in ``qm config`` output."""
    for line in config_output.splitlines():
        match = VM_DISK_KEY_RE.match(line.strip())
        if match:
            return match.group(2).split(",", 1)[0]
    return None


class ProxmoxHost:
    """Blocking calls to ``qm``, ``pvesm`` and ``pvesh`` on the local node."""

    def next_vmid(self) -> int:
        raw = run(["pvesh", "get", "/cluster/nextid"]).stdout.strip().strip('"')
        try:
            return int(raw)
        except ValueError:
            raise InstallerError(f"Unexpected answer from pvesh for next VM id: '{raw}'")

    def image_storages(self) -> List[StorageTarget]:
        return parse_storage_status(run(["pvesm", "status", "-content", "images"]).stdout)

    def vm_exists(self, vmid: int) -> bool:
        return run(["qm", "status", str(vmid)], check=False).returncode == 0

    def vm_status(self, vmid: int) -> str:
        # "status: running"
        output = run(["qm", "status", str(vmid)]).stdout.split()
        return output[1] if len(output) > 1 else "unknown"

    def stop_vm(self, vmid: int) -> None:
        run(["qm", "stop", str(vmid)])

    def destroy_vm(self, vmid: int) -> None:
        run(["qm", "destroy", str(vmid)])

    def import_ovf(self, vmid: int, manifest: Path, storage: str, disk_format: Optional[str] = None) -> None:
        cmd = ["qm", "importovf", str(vmid), str(manifest), storage]
        if disk_format:
            cmd += ["--format", disk_format]
        run(cmd)

    def vm_config(self, vmid: int) -> str:
        return run(["qm", "config", str(vmid)]).stdout

    def set_options(self, vmid: int, *options: str) -> None:
        run(["qm", "set", str(vmid), *options])

    def resize_disk(self, vmid: int, disk: str, size: str) -> None:
        run(["qm", "resize", str(vmid), disk, size])
