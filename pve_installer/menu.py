"""Interactive selection menus rendered with whiptail."""

from __future__ import annotations

import subprocess
from typing import List, Optional, Sequence, Tuple

from pve_installer.constants import WHIPTAIL_HEIGHT, WHIPTAIL_LIST_HEIGHT, WHIPTAIL_PADDING
from pve_installer.exceptions import (
    Cancelled,
    CommandFailed,
    InstallerError,
    NoStorageAvailable,
    UpstreamUnavailable,
)
from pve_installer.models import ReleaseEntry, StorageTarget, UsbCandidate
from pve_installer.utils import log

MenuItems = Sequence[Tuple[str, str]]


def menu_width(labels: Sequence[str], offset: int) -> int:
    longest = max((len(label) + offset for label in labels), default=0)
    return longest + WHIPTAIL_PADDING


class Whiptail:
    """Blocking modal dialogs; the selected tag is read from stderr."""

    binary = "whiptail"

    def _show(self, args: List[str]) -> str:
        cmd = [self.binary, *args]
        log("DEBUG", f"Running: {' '.join(cmd[:3])} ...")
        try:
            # stdout stays on the terminal for drawing
            result = subprocess.run(cmd, stderr=subprocess.PIPE, text=True)
        except FileNotFoundError as exc:
            raise CommandFailed(cmd, 127, str(exc))
        if result.returncode != 0:
            raise Cancelled()
        return result.stderr.strip()

    def menu(self, title: str, text: str, items: MenuItems, width: int) -> str:
        args = ["--title", title, "--menu", text, str(WHIPTAIL_HEIGHT), str(width), str(WHIPTAIL_LIST_HEIGHT)]
        for tag, label in items:
            args += [tag, label]
        return self._show(args)

    def radiolist(self, title: str, text: str, items: MenuItems, width: int) -> str:
        args = ["--title", title, "--radiolist", text, str(WHIPTAIL_HEIGHT), str(width), str(WHIPTAIL_LIST_HEIGHT)]
        for tag, label in items:
            args += [tag, label, "OFF"]
        return self._show(args)


def release_label(entry: ReleaseEntry) -> str:
    return f" {entry.kind.value}"


def storage_label(target: StorageTarget) -> str:
    return f"  Type: {target.backend_type:<10} Free: {target.free_label:>9} "


def select_release(ui: Whiptail, catalog: Sequence[ReleaseEntry]) -> ReleaseEntry:
    if not catalog:
        raise UpstreamUnavailable("No installable releases were found.")
    labels = [entry.kind.value for entry in catalog]
    items = [(entry.version, release_label(entry)) for entry in catalog]
    choice = ui.menu(
        "Select Version",
        "Select version to install:\n\n",
        items,
        menu_width(labels, 20),
    )
    for entry in catalog:
        if entry.version == choice:
            log("INFO", f"Using {entry.version} for VM installation")
            return entry
    raise InstallerError(f"Unknown release selected: '{choice}'")


def select_storage(ui: Whiptail, targets: Sequence[StorageTarget]) -> StorageTarget:
    log("INFO", "Selecting storage location")
    if not targets:
        log("WARN", "'Disk image' needs to be selected for at least one storage location.")
        raise NoStorageAvailable("Unable to detect valid storage location.")
    if len(targets) == 1:
        chosen = targets[0]
    else:
        items = [(target.identifier, storage_label(target)) for target in targets]
        width = menu_width([label for _, label in items], 2)
        by_id = {target.identifier: target for target in targets}
        choice = ""
        while choice not in by_id:
            choice = ui.radiolist(
                "Storage Pools",
                "Which storage pool you would like to use for the VM?\n\n",
                items,
                width,
            )
        chosen = by_id[choice]
    log("INFO", f"Using '{chosen.identifier}' for storage location.")
    return chosen


def select_usb(ui: Whiptail, candidates: Sequence[UsbCandidate]) -> Optional[UsbCandidate]:
    """Cancelling this optional prompt still aborts the whole run."""
    if not candidates:
        log("INFO", "No HomeMatic-RF USB device found.")
        return None
    log("INFO", "Selecting HomeMatic-RF USB devices")
    items = [(dev.vendor_product_id, dev.description) for dev in candidates]
    choice = ui.radiolist(
        "HomeMatic-RF USB devices",
        "Which HomeMatic-RF USB device should be bound to the VM?\n\n",
        items,
        menu_width([dev.description for dev in candidates], 2),
    )
    for dev in candidates:
        if dev.vendor_product_id == choice:
            log("INFO", f"Using '{dev.vendor_product_id}' as HomeMatic-RF device on usb0.")
            return dev
    log("INFO", "Using no USB device as HomeMatic-RF device.")
    return None
