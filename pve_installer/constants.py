"""Global constants and path configuration for pve-installer."""

from __future__ import annotations

import os
import re
from pathlib import Path

VERSION = "1.10"

GITHUB_API_URL = "https://api.github.com"
DEFAULT_GITHUB_REPO = "jens-maus/RaspberryMatic"
SNAPSHOT_TAG = "snapshots"
DISK_IMAGE_SUFFIXES = (".ova",)
DEFAULT_RELEASE_COUNT = 5
REQUEST_TIMEOUT = 30
USER_AGENT = "pve-installer/1.0"

DEFAULT_LOG_FILE = Path("/tmp/install-proxmox.log")
DEFAULT_USB_CONFIG_PATH = Path("/etc/pve-installer/usb-devices.yaml")
PVE_CONFIG_DIR = Path("/etc/pve")

DEFAULT_OVF_NAME = "RaspberryMatic.ovf"
DEFAULT_DISK_SIZE = "64G"
DEFAULT_BRIDGE = "vmbr0"
DEFAULT_DESCRIPTION = "RaspberryMatic CCU"
DEFAULT_VCPUS = 2

# Storage backends that need an explicit intermediate format on import
FILE_BACKED_STORAGE_TYPES = {"dir", "nfs"}
FILE_IMPORT_FORMAT = "qcow2"

SYSTEM_DISK = "scsi0"

# Known HomeMatic RF USB modules
DEFAULT_USB_ALLOWLIST = {
    "1b1f:c020": "HmIP-RFUSB",
    "10c4:8c07": "HB-RF-USB-2",
    "0403:6f70": "HB-RF-USB",
    "1b1f:c00f": "HM-CFG-USB-2",
}

TRUTHY = {"1", "true", "yes", "on"}
USB_ID_RE = re.compile(r"^[0-9a-f]{4}:[0-9a-f]{4}$")
DISK_SIZE_RE = re.compile(r"^\d+[KMGTkmgt]?$")
REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
VM_DISK_KEY_RE = re.compile(r"^(sata|scsi)\d+:\s*(\S+)")

WHIPTAIL_HEIGHT = 16
WHIPTAIL_LIST_HEIGHT = 6
WHIPTAIL_PADDING = 23

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

_SENSITIVE_FIELDS = {"github_token"}
