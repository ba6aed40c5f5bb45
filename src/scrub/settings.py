"""JSON-backed settings store."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from scrub.utils import xdg_config_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "scrub"
_SETTINGS_FILE = "config.json"

DEFAULTS: dict[str, Any] = {
    "version": "1",
    "debug_mode": False,
    "dry_run_mode": False,
}


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("paths.whitelist")  # reads data["paths"]["whitelist"]
        settings.set("dry_run_mode", True)  # writes + saves

    Every derived file (whitelist, operations log, targets catalog,
    dry-run export) lives next to the config file unless overridden
    under ``paths``.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def config_dir(self) -> Path:
        return self._path.parent

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key, falling back to built-in defaults."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return DEFAULTS.get(key, default)
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key and persist to disk."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self.save()

    @property
    def debug_mode(self) -> bool:
        return bool(self.get("debug_mode"))

    @property
    def dry_run_mode(self) -> bool:
        return bool(self.get("dry_run_mode"))

    def _file(self, key: str, default_name: str) -> Path:
        configured = self.get(f"paths.{key}")
        if configured:
            return Path(configured).expanduser()
        return self.config_dir / default_name

    @property
    def whitelist_file(self) -> Path:
        return self._file("whitelist", "whitelist.txt")

    @property
    def oplog_file(self) -> Path:
        return self._file("oplog", "operations.log")

    @property
    def export_file(self) -> Path:
        return self._file("export", "clean-list.txt")

    @property
    def project_paths_file(self) -> Path:
        return self._file("projects", "project-paths.txt")

    @property
    def targets_file(self) -> Path | None:
        """Custom target catalog, or None to use the built-in one."""
        configured = self.get("paths.targets")
        return Path(configured).expanduser() if configured else None

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            return
        if not isinstance(data, dict):
            log.warning("Ignoring settings in %s: expected a JSON object", self._path)
            return
        self._data = data

    def save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps({**DEFAULTS, **self._data}, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)
