"""Release discovery against the GitHub releases API."""

from __future__ import annotations

import os
from typing import Any, List, Optional

import requests

from pve_installer.constants import (
    DISK_IMAGE_SUFFIXES,
    GITHUB_API_URL,
    REQUEST_TIMEOUT,
    SNAPSHOT_TAG,
    USER_AGENT,
)
from pve_installer.exceptions import UpstreamUnavailable
from pve_installer.models import InstallerConfig, ReleaseEntry, ReleaseKind
from pve_installer.utils import log

RATE_LIMIT_HINT = "GitHub has returned an error. A rate limit may have been applied to your connection."


def _make_session(token: Optional[str]) -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    session.headers["Accept"] = "application/vnd.github+json"
    if token:
        session.headers["Authorization"] = f"Bearer {token}"
    return session


def _get_json(session: requests.Session, url: str) -> Any:
    log("DEBUG", f"GET {url}")
    try:
        resp = session.get(url, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        raise UpstreamUnavailable(f"{RATE_LIMIT_HINT} ({exc})")
    try:
        payload = resp.json()
    except ValueError:
        # requests.JSONDecodeError is a ValueError
        raise UpstreamUnavailable(f"{RATE_LIMIT_HINT} (invalid JSON from {url})")
    if isinstance(payload, dict) and "message" in payload:
        log("DEBUG", f"GitHub API message: {payload['message']}")
        raise UpstreamUnavailable(RATE_LIMIT_HINT)
    return payload


def version_from_asset(name: str) -> str:
    """``RaspberryMatic-3.75.6.20240316.ova`` -> ``3.75.6.20240316``."""
    stem = os.path.splitext(name)[0]
    return stem[name.find("-") + 1:]


def entry_from_release(release: dict, kind: ReleaseKind) -> Optional[ReleaseEntry]:
    """Build an entry from the first disk-image asset of ``release``."""
    assets = release.get("assets")
    if not isinstance(assets, list):
        raise UpstreamUnavailable(RATE_LIMIT_HINT)
    for asset in assets:
        if not isinstance(asset, dict):
            raise UpstreamUnavailable(RATE_LIMIT_HINT)
        name = asset.get("name")
        if isinstance(name, str) and name.lower().endswith(DISK_IMAGE_SUFFIXES):
            url = asset.get("browser_download_url")
            if not url:
                raise UpstreamUnavailable(RATE_LIMIT_HINT)
            return ReleaseEntry(version=version_from_asset(name), kind=kind, download_url=url)
    return None


def fetch_stable_releases(session: requests.Session, repo: str, limit: int) -> List[ReleaseEntry]:
    payload = _get_json(session, f"{GITHUB_API_URL}/repos/{repo}/releases")
    if not isinstance(payload, list):
        raise UpstreamUnavailable(RATE_LIMIT_HINT)

    entries: List[ReleaseEntry] = []
    for release in payload:
        if len(entries) >= limit:
            break
        if not isinstance(release, dict):
            raise UpstreamUnavailable(RATE_LIMIT_HINT)
        if release.get("prerelease") or release.get("tag_name") == SNAPSHOT_TAG:
            continue
        entry = entry_from_release(release, ReleaseKind.RELEASE)
        if entry is not None:
            entries.append(entry)
    return entries


def fetch_snapshot(session: requests.Session, repo: str) -> Optional[ReleaseEntry]:
    payload = _get_json(session, f"{GITHUB_API_URL}/repos/{repo}/releases/tags/{SNAPSHOT_TAG}")
    if not isinstance(payload, dict):
        raise UpstreamUnavailable(RATE_LIMIT_HINT)
    return entry_from_release(payload, ReleaseKind.SNAPSHOT)


def fetch_catalog(cfg: InstallerConfig, session: Optional[requests.Session] = None) -> List[ReleaseEntry]:
    """Return up to ``cfg.release_count`` stable releases followed by the snapshot."""
    if session is None:
        session = _make_session(cfg.github_token)
    log("INFO", f"Getting available releases of {cfg.github_repo}...")
    catalog = fetch_stable_releases(session, cfg.github_repo, cfg.release_count)
    snapshot = fetch_snapshot(session, cfg.github_repo)
    if snapshot is not None:
        catalog.append(snapshot)
    log("DEBUG", f"Found {len(catalog)} installable releases")
    return catalog
