"""Configuration loading and environment variable parsing for pve-installer."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from pve_installer.constants import (
    DEFAULT_BRIDGE,
    DEFAULT_DESCRIPTION,
    DEFAULT_DISK_SIZE,
    DEFAULT_GITHUB_REPO,
    DEFAULT_LOG_FILE,
    DEFAULT_OVF_NAME,
    DEFAULT_RELEASE_COUNT,
    DEFAULT_USB_ALLOWLIST,
    DEFAULT_USB_CONFIG_PATH,
    DEFAULT_VCPUS,
    PVE_CONFIG_DIR,
    REPO_RE,
    USB_ID_RE,
)
from pve_installer.exceptions import InstallerError
from pve_installer.models import InstallerConfig
from pve_installer.utils import get_env, log, parse_int_env, validate_disk_size


def load_usb_allowlist(config_path: Optional[Path] = None) -> Dict[str, str]:
    """Return the ``vendor:product -> label`` map of supported RF modules."""
    if config_path is None:
        config_path = DEFAULT_USB_CONFIG_PATH
    if not config_path.exists():
        log("DEBUG", f"No USB device config at {config_path}; using built-in list")
        return dict(DEFAULT_USB_ALLOWLIST)
    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        raise InstallerError(f"{config_path} contains invalid YAML: {exc}")
    except OSError as exc:
        raise InstallerError(f"Cannot read {config_path}: {exc}")
    if not isinstance(data, dict) or not isinstance(data.get("devices"), dict):
        raise InstallerError(f"{config_path} must contain a 'devices' mapping")

    allowlist: Dict[str, str] = {}
    for raw_id, label in data["devices"].items():
        usb_id = str(raw_id).strip().lower()
        if not USB_ID_RE.match(usb_id):
            raise InstallerError(
                f"Invalid USB id '{raw_id}' in {config_path}. Expected vendor:product hex (e.g. '1b1f:c020')"
            )
        allowlist[usb_id] = str(label or usb_id)
    return allowlist


def parse_env() -> InstallerConfig:
    repo = (get_env("GITHUB_REPO") or DEFAULT_GITHUB_REPO).strip()
    if not REPO_RE.match(repo):
        raise InstallerError(f"GITHUB_REPO must look like 'owner/name' (got '{repo}')")

    token = (get_env("GITHUB_TOKEN") or "").strip() or None
    release_count = parse_int_env("RELEASE_COUNT", str(DEFAULT_RELEASE_COUNT), min_val=1, max_val=20)
    disk_size = validate_disk_size((get_env("DISK_SIZE") or DEFAULT_DISK_SIZE).strip())
    vcpus = parse_int_env("VM_CPUS", str(DEFAULT_VCPUS), min_val=1, max_val=512)

    bridge = (get_env("VM_BRIDGE") or DEFAULT_BRIDGE).strip()
    description = get_env("VM_DESCRIPTION") or DEFAULT_DESCRIPTION
    ovf_name = (get_env("OVF_NAME") or DEFAULT_OVF_NAME).strip()
    if "/" in ovf_name or not ovf_name.lower().endswith(".ovf"):
        raise InstallerError(f"OVF_NAME must be a plain .ovf file name (got '{ovf_name}')")

    log_file = Path(get_env("LOG_FILE") or str(DEFAULT_LOG_FILE))
    pve_config_dir = Path(get_env("PVE_CONFIG_DIR") or str(PVE_CONFIG_DIR))
    usb_config = get_env("USB_DEVICES_CONFIG")
    usb_allowlist = load_usb_allowlist(Path(usb_config) if usb_config else None)

    return InstallerConfig(
        github_repo=repo,
        github_token=token,
        release_count=release_count,
        log_file=log_file,
        disk_size=disk_size,
        vcpus=vcpus,
        bridge=bridge,
        description=description,
        ovf_name=ovf_name,
        pve_config_dir=pve_config_dir,
        usb_allowlist=usb_allowlist,
    )
