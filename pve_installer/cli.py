"""CLI entry points for pve-installer."""

from __future__ import annotations

import argparse
import dataclasses
import traceback
from typing import List, Optional, Sequence

from pve_installer.cleanup import handle_failure
from pve_installer.config import parse_env
from pve_installer.constants import _SENSITIVE_FIELDS, SYSTEM_DISK, VERSION
from pve_installer.exceptions import Cancelled, InstallerError, NotProxmoxHost
from pve_installer.hypervisor import ProxmoxHost
from pve_installer.menu import Whiptail, select_release, select_storage, select_usb
from pve_installer.models import (
    InstallerConfig,
    ProvisioningSession,
    ReleaseEntry,
    StorageTarget,
    UsbCandidate,
)
from pve_installer.provision import Provisioner, import_format, usb_option, vm_settings, workspace
from pve_installer.releases import fetch_catalog
from pve_installer.usb import filter_candidates, list_usb_devices
from pve_installer.utils import append_log_file, configure_log_file, has_controlling_tty, log


def show_config(cfg: InstallerConfig) -> None:
    """Print the resolved installer configuration."""
    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if field.name in _SENSITIVE_FIELDS and value:
            print(f"  {field.name}: ********")
        elif isinstance(value, dict):
            print(f"  {field.name}:")
            for key, item in value.items():
                print(f"    {key}: {item}")
        else:
            print(f"  {field.name}: {value}")


def list_releases(catalog: Sequence[ReleaseEntry]) -> None:
    if not catalog:
        log("WARN", "No installable releases found")
        return
    width = max(len(entry.version) for entry in catalog)
    for entry in catalog:
        print(f"  {entry.version:<{width}}  {entry.kind.value:<8}  {entry.download_url}")


def print_banner(cfg: InstallerConfig) -> None:
    product = cfg.github_repo.split("/", 1)[1]
    print(f"{product} Proxmox installation script v{VERSION}", flush=True)
    print(flush=True)


def print_plan(
    cfg: InstallerConfig,
    release: ReleaseEntry,
    storage: StorageTarget,
    usb: Optional[UsbCandidate],
) -> None:
    """Show what a real run would do, without touching the hypervisor."""
    disk_format = import_format(storage.backend_type)
    log("INFO", "=== Dry-run plan ===")
    log("INFO", f"Release:  {release.version} ({release.kind.value}) {release.download_url}")
    log("INFO", f"Storage:  {storage.identifier} ({storage.backend_type}, {storage.free_label} free)")
    log("INFO", f"Import:   qm importovf <vmid> {cfg.ovf_name} {storage.identifier}"
        + (f" --format {disk_format}" if disk_format else ""))
    log("INFO", f"Settings: qm set <vmid> {' '.join(vm_settings(cfg, '<imported-disk>'))}")
    log("INFO", f"Boot:     qm set <vmid> --boot order={SYSTEM_DISK}")
    log("INFO", f"Resize:   qm resize <vmid> {SYSTEM_DISK} {cfg.disk_size}")
    if usb is not None:
        log("INFO", f"USB:      qm set <vmid> --usb0 {usb_option(usb.vendor_product_id)}")
    log("INFO", "=== Dry-run complete (no VM created) ===")


def ensure_proxmox_host(cfg: InstallerConfig) -> None:
    if not cfg.pve_config_dir.is_dir():
        raise NotProxmoxHost("This script must be executed on a Proxmox VE host system.")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Install an OVA appliance release as a Proxmox VE virtual machine")
    parser.add_argument("--list-releases", action="store_true", help="List installable releases and exit")
    parser.add_argument("--show-config", action="store_true", help="Show resolved configuration and exit")
    parser.add_argument("--dry-run", action="store_true", help="Run the selection menus, print the plan and exit")
    args = parser.parse_args(argv)

    try:
        cfg = parse_env()
    except InstallerError as exc:
        log("ERROR", str(exc))
        return exc.exit_code

    if args.show_config:
        show_config(cfg)
        return 0

    print_banner(cfg)

    if args.list_releases:
        try:
            list_releases(fetch_catalog(cfg))
        except InstallerError as exc:
            log("ERROR", str(exc))
            return exc.exit_code
        return 0

    configure_log_file(cfg.log_file)
    host = ProxmoxHost()
    ui = Whiptail()
    session: Optional[ProvisioningSession] = None
    try:
        ensure_proxmox_host(cfg)
        if not has_controlling_tty():
            raise InstallerError("An interactive terminal is required for the selection menus.")

        release = select_release(ui, fetch_catalog(cfg))
        storage = select_storage(ui, host.image_storages())
        usb = select_usb(ui, filter_candidates(list_usb_devices(), cfg.usb_allowlist))

        if args.dry_run:
            print_plan(cfg, release, storage, usb)
            return 0

        with workspace() as work_dir:
            session = ProvisioningSession(release=release, storage=storage, usb=usb, work_dir=work_dir)
            vm_id = Provisioner(cfg, host).provision(session)
    except Cancelled:
        log("INFO", "Installation cancelled.")
        return 0
    except InstallerError as exc:
        return handle_failure(exc, host, session.vm_id if session else None, cfg.log_file)
    except KeyboardInterrupt:
        interrupted = InstallerError("Interrupted by user.", exit_code=130)
        return handle_failure(interrupted, host, session.vm_id if session else None, cfg.log_file)
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        append_log_file(traceback.format_exc())
        traceback.print_exc()
        return handle_failure(exc, host, session.vm_id if session else None, cfg.log_file)

    log("SUCCESS", f"Completed Successfully. New VM is: {vm_id} ({cfg.description}).")
    return 0
