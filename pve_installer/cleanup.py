"""Failure reporting and best-effort rollback of a half-created VM."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pve_installer.exceptions import InstallerError
from pve_installer.hypervisor import ProxmoxHost
from pve_installer.utils import log


def failure_line(exc: BaseException) -> int:
    """Line number of the innermost frame that raised ``exc``."""
    tb = exc.__traceback__
    if tb is None:
        return 0
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_lineno


def rollback_vm(host: ProxmoxHost, vm_id: Optional[int]) -> None:
    if vm_id is None:
        return
    try:
        if not host.vm_exists(vm_id):
            return
        if host.vm_status(vm_id) == "running":
            log("INFO", f"Stopping VM {vm_id}")
            host.stop_vm(vm_id)
        log("INFO", f"Destroying VM {vm_id}")
        host.destroy_vm(vm_id)
    except (InstallerError, OSError) as exc:
        # the original failure stays authoritative
        log("WARN", f"Rollback of VM {vm_id} failed: {exc}")


def handle_failure(exc: BaseException, host: ProxmoxHost, vm_id: Optional[int], log_file: Path) -> int:
    """Report ``exc``, roll back ``vm_id`` and return the exit status to use."""
    exit_code = exc.exit_code if isinstance(exc, InstallerError) else 1
    reason = str(exc) or "Unknown failure occurred."
    flag = f"{exit_code}@{failure_line(exc)}:"
    log("ERROR", f"{flag} {reason}")
    rollback_vm(host, vm_id)
    log("ERROR", f"{flag} See {log_file} for error details")
    return exit_code
