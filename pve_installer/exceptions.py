"""Custom exceptions for pve-installer."""

from __future__ import annotations

from typing import List, Optional


class InstallerError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""

    def __init__(self, message: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.exit_code = exit_code or 1


class CommandFailed(InstallerError):
    """An external command exited with a non-zero status."""

    def __init__(self, cmd: List[str], returncode: int, stderr: Optional[str] = None) -> None:
        detail = (stderr or "").strip().splitlines()
        message = f"Command failed ({returncode}): {' '.join(cmd)}"
        if detail:
            message += f" -- {detail[-1]}"
        super().__init__(message, exit_code=returncode)
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr


class UpstreamUnavailable(InstallerError):
    """The release API returned an error object or could not be reached."""


class NoStorageAvailable(InstallerError):
    """No storage pool accepts disk images."""


class DownloadFailed(InstallerError):
    pass


class ExtractFailed(InstallerError):
    pass


class ImportFailed(InstallerError):
    pass


class NotProxmoxHost(InstallerError):
    pass


class Cancelled(Exception):
    """The operator closed a menu; not an error."""
