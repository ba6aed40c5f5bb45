"""Concurrent multi-target scan engine."""

from __future__ import annotations

import glob
import logging
import os
import stat
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Mapping

from scrub.core.paths import expand_env
from scrub.core.whitelist import Whitelist
from scrub.errors import ScanPathError
from scrub.models.clean_target import CleanTarget
from scrub.models.scan_result import CleanItem, ScanResult, items_to_result
from scrub.utils import CancelToken, is_cancelled

log = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]  # (target_name, status_message)
ResultCallback = Callable[[ScanResult], None]


def expand_target_path(raw: str, environ: Mapping[str, str] | None = None) -> list[str]:
    """Expand env references and globs in one target path pattern.

    Falls back to the literal expanded string when the glob matches
    nothing, so plain paths still reach the existence check.
    """
    expanded = expand_env(raw, environ)
    try:
        matches = sorted(glob.glob(expanded))
    except (OSError, ValueError) as exc:
        log.debug("Glob expansion failed for %s: %s", expanded, exc)
        matches = []
    if not matches:
        matches = [expanded]
    return [os.path.normpath(m) for m in matches]


def walk_files(
    directory: str,
    category: str,
    description: str,
    whitelist: Whitelist | None = None,
    cancel: CancelToken | None = None,
) -> list[CleanItem]:
    """Collect every regular file beneath *directory* as a CleanItem.

    Symlinks are neither followed nor reported. Whitelisted and
    inaccessible entries are skipped.
    """
    items: list[CleanItem] = []
    stack = [directory]
    while stack:
        if is_cancelled(cancel):
            break
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name, reverse=True)
        except OSError as exc:
            log.debug("%s", ScanPathError(current, exc))
            continue

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(entry.path)
                    continue
                if not entry.is_file(follow_symlinks=False):
                    continue
                if whitelist is not None and whitelist.is_whitelisted(entry.path):
                    log.debug("Whitelisted, skipping: %s", entry.path)
                    continue
                size = entry.stat(follow_symlinks=False).st_size
            except OSError as exc:
                log.debug("%s", ScanPathError(entry.path, exc))
                continue
            items.append(CleanItem(path=entry.path, size_bytes=size, category=category, description=description))
    return items


def scan_target(
    target: CleanTarget,
    whitelist: Whitelist | None = None,
    cancel: CancelToken | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[CleanItem]:
    """Discover the cleanable files for a single target. MUST NOT delete anything."""
    items: list[CleanItem] = []

    for raw in target.paths:
        if is_cancelled(cancel):
            break
        for path in expand_target_path(raw, environ):
            if whitelist is not None and whitelist.is_whitelisted(path):
                log.debug("Whitelisted, skipping: %s", path)
                continue
            try:
                st = os.lstat(path)
            except OSError:
                # Most catalog paths simply don't exist on a given machine.
                continue

            if stat.S_ISDIR(st.st_mode):
                items.extend(walk_files(path, target.category, target.description, whitelist, cancel))
            elif stat.S_ISREG(st.st_mode):
                items.append(
                    CleanItem(path=path, size_bytes=st.st_size, category=target.category, description=target.description)
                )
    return items


def scan_all(
    targets: list[CleanTarget],
    whitelist: Whitelist | None,
    has_elevated_privilege: bool,
    *,
    cancel: CancelToken | None = None,
    on_progress: ProgressCallback | None = None,
    on_result: ResultCallback | None = None,
    max_workers: int | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[ScanResult]:
    """Scan all targets concurrently, one worker per target.

    Targets that need elevated privileges are left out entirely when the
    caller lacks them, so "skipped" stays distinguishable from "found
    nothing". Targets yielding no items contribute no result.

    Args:
        targets: Targets to scan.
        whitelist: Shared whitelist; read concurrently by every worker.
        has_elevated_privilege: Whether privileged targets may be scanned.
        cancel: Optional token; a cancelled scan returns what it has so far.
        on_progress: Optional callback for progress updates.
        on_result: Optional callback fired after each non-empty target.
        max_workers: Cap on concurrent workers. One per target by default.
        environ: Environment used for path expansion (``os.environ`` by default).

    Returns:
        Scan results sorted by target name.
    """
    runnable: list[CleanTarget] = []
    for target in targets:
        if target.requires_elevated_privilege and not has_elevated_privilege:
            log.info("Target '%s' requires elevated privileges, skipping", target.name)
            continue
        runnable.append(target)
    if not runnable:
        return []

    results: list[ScanResult] = []
    lock = threading.Lock()

    def _scan_one(target: CleanTarget) -> None:
        if is_cancelled(cancel):
            return
        if on_progress:
            on_progress(target.name, "scanning")
        try:
            items = scan_target(target, whitelist, cancel, environ)
        except Exception:
            log.exception("Target '%s' failed during scan", target.name)
            if on_progress:
                on_progress(target.name, "error")
            return
        if items:
            result = items_to_result(target.name, items)
            with lock:
                results.append(result)
            if on_result:
                on_result(result)
        if on_progress:
            on_progress(target.name, "done")

    workers = min(max_workers or len(runnable), len(runnable))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_scan_one, target) for target in runnable]
        for future in futures:
            future.result()

    results.sort(key=lambda r: r.category)
    log.info("Scanned %d targets, %d with cleanable items", len(runnable), len(results))
    return results
