"""Clean target catalog.

The catalog is external configuration: a JSON list of target records.
When none is configured, a small built-in Linux catalog is used.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Mapping

from scrub.models.clean_target import CleanTarget
from scrub.utils import xdg_cache_home

log = logging.getLogger(__name__)

_CACHE = "${XDG_CACHE_HOME}"

BUILTIN_TARGETS: tuple[CleanTarget, ...] = (
    CleanTarget(
        name="UserTemp",
        paths=("$TMPDIR/*",),
        description="User temporary files",
        category="user",
    ),
    CleanTarget(
        name="Thumbnails",
        paths=(f"{_CACHE}/thumbnails", "~/.thumbnails"),
        description="Desktop thumbnail cache",
        category="user",
    ),
    CleanTarget(
        name="ChromeCache",
        paths=(f"{_CACHE}/google-chrome/*/Cache", f"{_CACHE}/google-chrome/*/Code Cache"),
        description="Google Chrome browser cache",
        category="browser",
    ),
    CleanTarget(
        name="ChromiumCache",
        paths=(f"{_CACHE}/chromium/*/Cache", f"{_CACHE}/chromium/*/Code Cache"),
        description="Chromium browser cache",
        category="browser",
    ),
    CleanTarget(
        name="FirefoxCache",
        paths=(f"{_CACHE}/mozilla/firefox/*/cache2", f"{_CACHE}/mozilla/firefox/*/startupCache"),
        description="Mozilla Firefox browser cache (cache2 within profiles)",
        category="browser",
    ),
    CleanTarget(
        name="PipCache",
        paths=(f"{_CACHE}/pip",),
        description="Python pip package cache",
        category="dev",
    ),
    CleanTarget(
        name="NpmCache",
        paths=("~/.npm/_cacache",),
        description="npm package manager cache",
        category="dev",
    ),
    CleanTarget(
        name="CargoCache",
        paths=("~/.cargo/registry/cache",),
        description="Rust cargo registry cache",
        category="dev",
    ),
    CleanTarget(
        name="GradleCache",
        paths=("~/.gradle/caches",),
        description="Gradle build cache",
        category="dev",
        risk_level="medium",
    ),
    CleanTarget(
        name="AptArchives",
        paths=("/var/cache/apt/archives/*.deb",),
        description="Downloaded .deb package files",
        requires_elevated_privilege=True,
        category="system",
    ),
    CleanTarget(
        name="JournalLogs",
        paths=("/var/log/journal",),
        description="Archived systemd journal files",
        requires_elevated_privilege=True,
        category="system",
        risk_level="medium",
    ),
)


def load_targets(path: Path | None = None) -> list[CleanTarget]:
    """Load clean targets from a JSON catalog at *path*.

    Falls back to the built-in catalog when *path* is None. Invalid
    records are logged and skipped; duplicate names keep the first.

    Raises:
        OSError: If *path* cannot be read.
        ValueError: If *path* is not a JSON list.
    """
    if path is None:
        return list(BUILTIN_TARGETS)

    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"target catalog {path} must contain a JSON list")

    targets: list[CleanTarget] = []
    seen: set[str] = set()
    for record in raw:
        try:
            target = CleanTarget.from_dict(record)
        except (TypeError, ValueError, AttributeError) as e:
            log.warning("Skipping invalid target in %s: %s", path, e)
            continue
        if target.name in seen:
            log.warning("Target '%s' already defined, skipping duplicate", target.name)
            continue
        seen.add(target.name)
        targets.append(target)

    log.info("Loaded %d targets from %s", len(targets), path)
    return targets


def targets_by_category(targets: list[CleanTarget], categories: set[str] | None) -> list[CleanTarget]:
    """Filter *targets* to *categories*; None or empty keeps all."""
    if not categories:
        return list(targets)
    return [t for t in targets if t.category in categories]


def scan_environ(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Environment for expanding catalog paths, with XDG and temp defaults filled in."""
    env = dict(os.environ if environ is None else environ)
    env.setdefault("XDG_CACHE_HOME", str(xdg_cache_home()))
    env.setdefault("TMPDIR", tempfile.gettempdir())
    return env
