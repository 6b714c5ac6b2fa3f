"""USB device discovery for RF module pass-through."""

from __future__ import annotations

from typing import Dict, Iterable, List

from pve_installer.exceptions import CommandFailed
from pve_installer.models import UsbCandidate
from pve_installer.utils import log, run


def parse_lsusb(output: str) -> List[UsbCandidate]:
    devices: List[UsbCandidate] = []
    for line in output.splitlines():
        # Bus 001 Device 004: ID 1b1f:c020 eQ-3 Entwicklung GmbH HmIP-RFUSB
        fields = line.split(maxsplit=6)
        if len(fields) < 6 or fields[4] != "ID":
            continue
        description = fields[6].strip() if len(fields) > 6 else ""
        devices.append(UsbCandidate(vendor_product_id=fields[5].lower(), description=description))
    return devices


def list_usb_devices() -> List[UsbCandidate]:
    try:
        return parse_lsusb(run(["lsusb"]).stdout)
    except CommandFailed as exc:
        log("WARN", f"Unable to enumerate USB devices: {exc}")
        return []


def filter_candidates(devices: Iterable[UsbCandidate], allowlist: Dict[str, str]) -> List[UsbCandidate]:
    return [dev for dev in devices if dev.vendor_product_id in allowlist]
