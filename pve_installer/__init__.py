"""pve-installer package."""

__all__ = [
    "cleanup",
    "cli",
    "config",
    "constants",
    "exceptions",
    "hypervisor",
    "menu",
    "models",
    "provision",
    "releases",
    "usb",
    "utils",
]
