"""The single choke point through which every deletion passes."""

from __future__ import annotations

import logging
import os
import shutil
import stat
from typing import TYPE_CHECKING, Callable, Iterable

from scrub.core.guard import PathGuard, default_guard
from scrub.errors import DeletionBlocked, WhitelistedPath
from scrub.models.clean_result import CleanResult
from scrub.models.scan_result import CleanItem
from scrub.utils import CancelToken, dir_size, is_cancelled

if TYPE_CHECKING:
    from scrub.core.whitelist import Whitelist
    from scrub.oplog import OperationLog

log = logging.getLogger(__name__)

ItemCallback = Callable[[CleanItem, int, Exception | None], None]


def safe_delete(path: str, dry_run: bool, *, guard: PathGuard | None = None) -> int:
    """Delete *path* after validating it, returning the bytes freed.

    The size is measured immediately before deletion, never trusted from
    an earlier scan. Under ``dry_run`` nothing on disk is touched.

    Args:
        path: Absolute path of a file or directory.
        dry_run: Only measure; report what would be freed.
        guard: Path guard to validate with (the host default if None).

    Returns:
        Bytes freed (or that would be freed). ``0`` if the path is already gone.

    Raises:
        DeletionBlocked: The guard rejected the path. No I/O was performed.
        OSError: The filesystem refused the deletion. Not retried here.
    """
    (guard or default_guard()).validate(path)

    try:
        st = os.lstat(path)
    except (FileNotFoundError, NotADirectoryError):
        return 0

    is_dir = stat.S_ISDIR(st.st_mode)
    size = dir_size(path) if is_dir else st.st_size

    if dry_run:
        log.debug("Dry run: would delete %s (%d bytes)", path, size)
        return size

    if is_dir:
        shutil.rmtree(path)
    else:
        os.remove(path)
    log.debug("Deleted %s (%d bytes)", path, size)
    return size


def safe_delete_with_whitelist(
    path: str,
    dry_run: bool,
    is_whitelisted: Callable[[str], bool],
    *,
    guard: PathGuard | None = None,
) -> int:
    """Like :func:`safe_delete`, but consult the operator's whitelist first.

    Raises:
        WhitelistedPath: The predicate matched; checked before the guard.
        DeletionBlocked: See :func:`safe_delete`.
        OSError: See :func:`safe_delete`.
    """
    if is_whitelisted(path):
        raise WhitelistedPath(path)
    return safe_delete(path, dry_run, guard=guard)


def delete_items(
    items: Iterable[CleanItem],
    dry_run: bool,
    *,
    whitelist: Whitelist | None = None,
    guard: PathGuard | None = None,
    cancel: CancelToken | None = None,
    retries: int = 0,
    on_item: ItemCallback | None = None,
    oplog: OperationLog | None = None,
) -> CleanResult:
    """Run every item through the executor, never aborting on one failure.

    Args:
        items: Items to delete, typically flattened from scan results.
        dry_run: Forwarded to every :func:`safe_delete` call.
        whitelist: If given, whitelisted items are skipped and counted.
        guard: Path guard override.
        cancel: Stop between items once cancelled.
        retries: Extra attempts for items failing with ``OSError``.
        on_item: Called after each item with (item, bytes_freed, error).
        oplog: Operations log receiving one line per item.

    Returns:
        Summary with bytes freed, counts per outcome and the last error.
    """
    result = CleanResult(dry_run=dry_run)
    operation = "DRY_RUN" if dry_run else "DELETE"

    for item in items:
        if is_cancelled(cancel):
            result.cancelled = True
            log.info("Batch cancelled after %d items", result.items_deleted + result.skipped)
            break

        freed = 0
        error: Exception | None = None
        for attempt in range(retries + 1):
            try:
                if whitelist is not None:
                    freed = safe_delete_with_whitelist(item.path, dry_run, whitelist.is_whitelisted, guard=guard)
                else:
                    freed = safe_delete(item.path, dry_run, guard=guard)
                error = None
                break
            except (WhitelistedPath, DeletionBlocked) as exc:
                error = exc
                break
            except OSError as exc:
                error = exc
                if attempt < retries:
                    log.debug("Retrying %s after error: %s", item.path, exc)

        if error is None:
            result.bytes_freed += freed
            result.items_deleted += 1
        else:
            if isinstance(error, WhitelistedPath):
                result.whitelisted_count += 1
            elif isinstance(error, DeletionBlocked):
                result.blocked_count += 1
                log.warning("Refused to delete %s", error)
            else:
                result.error_count += 1
                log.debug("Failed to delete %s: %s", item.path, error)
            result.errors.append(f"{item.path}: {error}")
            result.last_error = error

        if oplog is not None:
            oplog.log(operation, item.path, freed, error)
        if on_item:
            on_item(item, freed, error)

    log.info(
        "%s: %d bytes from %d items, %d errors, %d blocked, %d whitelisted",
        operation, result.bytes_freed, result.items_deleted,
        result.error_count, result.blocked_count, result.whitelisted_count,
    )
    return result
