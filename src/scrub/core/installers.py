"""Stale installer and large archive discovery in download-style folders."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Mapping

from scrub.core.paths import expand_env
from scrub.core.whitelist import Whitelist
from scrub.errors import ScanPathError
from scrub.models.scan_result import CleanItem, ScanResult, items_to_result

log = logging.getLogger(__name__)

INSTALLER_EXTENSIONS = frozenset({
    ".exe", ".msi", ".msix", ".msixbundle", ".appx", ".appxbundle",
    ".deb", ".rpm", ".appimage", ".flatpakref", ".snap", ".dmg", ".pkg",
})
ARCHIVE_EXTENSIONS = frozenset({".zip", ".7z", ".rar"})

# Archives are only offered above this size; small ones are usually documents.
LARGE_ARCHIVE_BYTES = 50 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class InstallerLocation:
    path: str
    label: str


@dataclass(frozen=True, slots=True)
class InstallerFile:
    path: str
    name: str
    size: int
    extension: str
    source: str
    modified: datetime


def default_installer_locations(environ: Mapping[str, str] | None = None) -> list[InstallerLocation]:
    """Downloads, Desktop and the temp directory of the current user."""
    home = expand_env("~", environ)
    env = os.environ if environ is None else environ
    temp = env.get("TMPDIR") or env.get("TEMP") or env.get("TMP")
    locations = [
        InstallerLocation(os.path.join(home, "Downloads"), "Downloads"),
        InstallerLocation(os.path.join(home, "Desktop"), "Desktop"),
    ]
    if temp:
        locations.append(InstallerLocation(os.path.normpath(temp), "Temp"))
    return locations


def is_installer(name: str, size: int) -> bool:
    """True for installer packages and for archives above the size cutoff."""
    ext = os.path.splitext(name)[1].lower()
    if ext in INSTALLER_EXTENSIONS:
        return True
    return ext in ARCHIVE_EXTENSIONS and size > LARGE_ARCHIVE_BYTES


def scan_installers(
    locations: Iterable[InstallerLocation],
    *,
    min_age_days: int = 0,
    min_size: int = 0,
    whitelist: Whitelist | None = None,
    now: datetime | None = None,
) -> list[InstallerFile]:
    """List installer files directly inside each location (no recursion).

    Files newer than *min_age_days* or smaller than *min_size* are left
    out; ``0`` disables either filter. Symlinks are never reported.
    MUST NOT delete anything.
    """
    cutoff = (now or datetime.now()) - timedelta(days=min_age_days) if min_age_days > 0 else None
    found: list[InstallerFile] = []

    for location in locations:
        try:
            with os.scandir(location.path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            log.debug("%s", ScanPathError(location.path, exc))
            continue

        for entry in entries:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                st = entry.stat(follow_symlinks=False)
            except OSError as exc:
                log.debug("%s", ScanPathError(entry.path, exc))
                continue

            if min_size > 0 and st.st_size < min_size:
                continue
            modified = datetime.fromtimestamp(st.st_mtime)
            if cutoff is not None and modified > cutoff:
                continue
            if not is_installer(entry.name, st.st_size):
                continue
            if whitelist is not None and whitelist.is_whitelisted(entry.path):
                log.debug("Whitelisted, skipping: %s", entry.path)
                continue

            found.append(
                InstallerFile(
                    path=entry.path,
                    name=entry.name,
                    size=st.st_size,
                    extension=os.path.splitext(entry.name)[1].lower(),
                    source=location.label,
                    modified=modified,
                )
            )

    log.info("Found %d installer files", len(found))
    return found


def installers_to_results(files: Iterable[InstallerFile]) -> list[ScanResult]:
    """Group installer files by source folder into scan results."""
    grouped: dict[str, list[CleanItem]] = {}
    for f in files:
        grouped.setdefault(f.source, []).append(
            CleanItem(path=f.path, size_bytes=f.size, category="user", description=f"{f.extension} installer")
        )
    return [items_to_result(source, items) for source, items in sorted(grouped.items())]
