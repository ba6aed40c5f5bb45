"""Project build-artifact discovery (``node_modules``, ``target``, ``.venv`` ...).

Artifacts are whole directories that a build tool can regenerate. A
directory only counts when the project around it carries one of the
indicator files for that tool, so an unrelated folder called ``build``
or ``bin`` is never offered for deletion.
"""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Mapping

from scrub.core.guard import is_link
from scrub.core.paths import expand_env
from scrub.core.whitelist import Whitelist
from scrub.errors import ScanPathError
from scrub.models.scan_result import CleanItem, ScanResult, items_to_result
from scrub.utils import CancelToken, dir_size, is_cancelled

log = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 3
RECENT_DAYS = 7

DEFAULT_PROJECT_DIRS = ("Projects", "GitHub", "dev", "Code", "workspace", "Documents")

_PATHS_FILE_HEADER = (
    "# scrub project scan paths - one directory per line\n"
    "# Environment variables (e.g. $HOME, %USERPROFILE%) are expanded at runtime\n"
    "\n"
)


@dataclass(frozen=True, slots=True)
class ArtifactRule:
    """A regenerable directory name and the files that prove its project type.

    An empty ``indicators`` tuple means the name alone is enough.
    """

    dir_name: str
    indicators: tuple[str, ...] = ()


ARTIFACT_RULES: tuple[ArtifactRule, ...] = (
    ArtifactRule("node_modules", ("package.json",)),
    ArtifactRule("target", ("Cargo.toml", "pom.xml")),
    ArtifactRule("build", ("build.gradle", "build.gradle.kts")),
    ArtifactRule("dist", ("package.json", "vite.config.js", "webpack.config.js")),
    ArtifactRule(".next", ("next.config.js",)),
    ArtifactRule(".nuxt", ("nuxt.config.js", "nuxt.config.ts")),
    ArtifactRule("__pycache__"),
    ArtifactRule("venv"),
    ArtifactRule(".venv"),
    ArtifactRule(".gradle", ("build.gradle",)),
    ArtifactRule(".idea"),
    ArtifactRule("vendor", ("go.mod", "composer.json")),
    ArtifactRule("bin", ("*.csproj",)),
    ArtifactRule("obj", ("*.csproj",)),
)

_RULES_BY_NAME = {rule.dir_name: rule for rule in ARTIFACT_RULES}


@dataclass(frozen=True, slots=True)
class ProjectArtifact:
    project_path: str
    artifact_path: str
    artifact_type: str
    size: int
    modified: datetime

    def is_recent(self, now: datetime | None = None, days: int = RECENT_DAYS) -> bool:
        """True if the artifact changed within the last *days* days."""
        return self.modified > (now or datetime.now()) - timedelta(days=days)


def _has_indicator(directory: str, indicators: tuple[str, ...]) -> bool:
    for indicator in indicators:
        candidate = os.path.join(directory, indicator)
        if "*" in indicator:
            if glob.glob(candidate):
                return True
        elif os.path.exists(candidate):
            return True
    return False


def _walk(
    current: str,
    depth: int,
    max_depth: int,
    seen: set[str],
    found: list[ProjectArtifact],
    whitelist: Whitelist | None,
    cancel: CancelToken | None,
) -> None:
    if depth > max_depth or is_cancelled(cancel):
        return
    try:
        with os.scandir(current) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        log.debug("%s", ScanPathError(current, exc))
        return

    subdirs = []
    for entry in entries:
        try:
            if not entry.is_dir(follow_symlinks=False):
                continue
        except OSError:
            continue
        # Symlinks and junctions are never entered or offered.
        if is_link(entry.path):
            continue

        rule = _RULES_BY_NAME.get(entry.name)
        if rule is None:
            if not entry.name.startswith("."):
                subdirs.append(entry.path)
            continue

        if rule.indicators and not _has_indicator(current, rule.indicators):
            continue
        key = entry.path.lower()
        if key in seen:
            continue
        if whitelist is not None and whitelist.is_whitelisted(entry.path):
            log.debug("Whitelisted, skipping: %s", entry.path)
            continue
        try:
            modified = datetime.fromtimestamp(entry.stat(follow_symlinks=False).st_mtime)
        except OSError as exc:
            log.debug("%s", ScanPathError(entry.path, exc))
            continue
        seen.add(key)
        found.append(
            ProjectArtifact(
                project_path=current,
                artifact_path=entry.path,
                artifact_type=rule.dir_name,
                size=dir_size(entry.path, cancel),
                modified=modified,
            )
        )

    for subdir in subdirs:
        _walk(subdir, depth + 1, max_depth, seen, found, whitelist, cancel)


def scan_projects(
    roots: Iterable[str],
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    whitelist: Whitelist | None = None,
    cancel: CancelToken | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[ProjectArtifact]:
    """Find build artifacts beneath *roots*, at most *max_depth* levels down.

    Artifact directories are reported whole and never descended into.
    Hidden directories are skipped unless they are artifacts themselves.
    Missing roots are ignored. MUST NOT delete anything.
    """
    found: list[ProjectArtifact] = []
    seen: set[str] = set()
    for raw in roots:
        root = os.path.normpath(expand_env(raw, environ))
        if not os.path.isdir(root):
            continue
        _walk(root, 0, max_depth, seen, found, whitelist, cancel)
    log.info("Found %d project artifacts", len(found))
    return found


def artifacts_to_results(
    artifacts: Iterable[ProjectArtifact],
    *,
    min_size: int = 0,
    min_age_days: int = RECENT_DAYS,
    now: datetime | None = None,
) -> list[ScanResult]:
    """Group artifacts by type into scan results the executor can consume.

    Artifacts smaller than *min_size* or modified within *min_age_days*
    are left out.
    """
    now = now or datetime.now()
    grouped: dict[str, list[CleanItem]] = {}
    for artifact in artifacts:
        if artifact.size < min_size:
            continue
        if min_age_days > 0 and artifact.is_recent(now, min_age_days):
            continue
        grouped.setdefault(artifact.artifact_type, []).append(
            CleanItem(
                path=artifact.artifact_path,
                size_bytes=artifact.size,
                category="dev",
                description=f"{artifact.artifact_type} in {artifact.project_path}",
            )
        )
    return [items_to_result(name, items) for name, items in sorted(grouped.items())]


def default_project_paths(environ: Mapping[str, str] | None = None) -> list[str]:
    """Common project folders inside the user's home directory."""
    home = expand_env("~", environ)
    return [os.path.join(home, name) for name in DEFAULT_PROJECT_DIRS]


def load_project_paths(path: Path | str) -> list[str]:
    """Read configured project roots; a missing file yields an empty list.

    Raises:
        OSError: If the file exists but cannot be read.
    """
    path = Path(path)
    if not path.exists():
        return []
    roots = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            roots.append(line)
    return roots


def save_project_paths(path: Path | str, roots: Iterable[str]) -> None:
    """Write project roots to *path*, creating parent directories.

    Raises:
        OSError: On write failure.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_PATHS_FILE_HEADER + "".join(f"{r}\n" for r in roots), encoding="utf-8")
