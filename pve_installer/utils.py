"""Utility functions for pve-installer."""

from __future__ import annotations

import os
import re
import subprocess
import sys
import tarfile
import tempfile
import time
from pathlib import Path
from typing import List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from pve_installer.constants import (
    _LOG_VERBOSE,
    DISK_SIZE_RE,
    USER_AGENT,
)
from pve_installer.exceptions import CommandFailed, DownloadFailed, ExtractFailed, InstallerError

_ANSI_RE = re.compile(r"\033\[[0-9;]*m")
_log_file: Optional[Path] = None


def configure_log_file(path: Optional[Path], truncate: bool = True) -> None:
    """Mirror log lines and command output into ``path``."""
    global _log_file
    _log_file = path
    if path is None:
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if truncate:
            path.write_text("")
    except OSError as exc:
        _log_file = None
        log("WARN", f"Cannot write log file {path}: {exc}")


def append_log_file(text: str) -> None:
    global _log_file
    if _log_file is None or not text:
        return
    try:
        with open(_log_file, "a") as f:
            f.write(_ANSI_RE.sub("", text))
            if not text.endswith("\n"):
                f.write("\n")
    except OSError as exc:
        path, _log_file = _log_file, None
        log("WARN", f"Cannot write log file {path}, no longer mirroring output: {exc}")


def log(level: str, message: str) -> None:
    """Lightweight structured logging compatible with existing colour expectation."""
    append_log_file(f"[{level}] {message}")
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;36m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = int(raw)
    except ValueError:
        raise InstallerError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise InstallerError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise InstallerError(f"{name} must be <= {max_val} (got {value})")
    return value


def validate_disk_size(raw: str) -> str:
    if not DISK_SIZE_RE.match(raw):
        raise InstallerError(
            f"Invalid DISK_SIZE '{raw}'. Use a number with optional suffix: K, M, G, T (e.g. '64G')"
        )
    return raw


def format_iec(num_bytes: int) -> str:
    """Render a byte count with binary prefixes and two decimals (e.g. ``1.00GiB``)."""
    value = float(num_bytes)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB", "PiB"):
        if abs(value) < 1024 or unit == "PiB":
            return f"{value:.2f}{unit}"
        value /= 1024
    return f"{value:.2f}PiB"  # pragma: no cover


def has_controlling_tty() -> bool:
    """Return True if both stdin and stdout are attached to a TTY."""
    for stream in (sys.stdin, sys.stdout):
        try:
            if not stream.isatty():
                return False
        except (AttributeError, ValueError):
            return False
    return True


def download_file(url: str, destination: Path, label: str = "Downloading") -> None:
    """Download a file with a progress bar using Python urllib."""
    log("INFO", f"{label}: {url}")
    req = Request(url, headers={"User-Agent": USER_AGENT})
    try:
        response = urlopen(req, timeout=60)
    except HTTPError as exc:
        raise DownloadFailed(f"HTTP error downloading {url}: {exc.code} {exc.reason}")
    except (URLError, OSError) as exc:
        raise DownloadFailed(f"Failed to download {url}: {getattr(exc, 'reason', exc)}")

    total = response.headers.get("Content-Length")
    total_bytes = int(total) if total else None
    downloaded = 0
    start_time = time.time()

    with tempfile.NamedTemporaryFile(delete=False, dir=destination.parent) as tmp:
        tmp_path = Path(tmp.name)
        try:
            chunk_size = 1024 * 256  # 256 KiB
            while True:
                try:
                    chunk = response.read(chunk_size)
                except OSError as exc:
                    raise DownloadFailed(f"Connection lost while downloading {url}: {exc}")
                if not chunk:
                    break
                tmp.write(chunk)
                downloaded += len(chunk)

                elapsed = time.time() - start_time
                speed = downloaded / elapsed if elapsed > 0 else 0
                downloaded_mb = downloaded / (1024 * 1024)

                if total_bytes:
                    total_mb = total_bytes / (1024 * 1024)
                    pct = downloaded * 100 / total_bytes
                    bar_len = 30
                    filled = int(bar_len * downloaded / total_bytes)
                    bar = "#" * filled + "-" * (bar_len - filled)
                    print(
                        f"\r  [{bar}] {pct:5.1f}% {downloaded_mb:.1f}/{total_mb:.1f} MiB "
                        f"({speed / (1024 * 1024):.1f} MiB/s)",
                        end="", flush=True,
                    )
                else:
                    print(
                        f"\r  {downloaded_mb:.1f} MiB downloaded "
                        f"({speed / (1024 * 1024):.1f} MiB/s)",
                        end="", flush=True,
                    )
            print(flush=True)  # newline after progress
            tmp.flush()
            tmp_path.replace(destination)
            elapsed = time.time() - start_time
            log("SUCCESS", f"Downloaded {downloaded / (1024 * 1024):.1f} MiB in {elapsed:.1f}s")
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
            raise


def extract_archive(archive: Path, destination: Path) -> List[Path]:
    """Unpack a tar archive (``.ova`` is plain tar) and return the extracted paths."""
    try:
        with tarfile.open(archive) as tar:
            members = tar.getmembers()
            tar.extractall(destination, filter="data")
    except (tarfile.TarError, OSError) as exc:
        raise ExtractFailed(f"Cannot extract {archive.name}: {exc}")
    return [destination / member.name for member in members]


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging; output goes to the log file."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, **kwargs)
    except FileNotFoundError as exc:
        raise CommandFailed(cmd, 127, str(exc))
    append_log_file(result.stdout)
    append_log_file(result.stderr)
    if check and result.returncode != 0:
        raise CommandFailed(cmd, result.returncode, result.stderr)
    return result
