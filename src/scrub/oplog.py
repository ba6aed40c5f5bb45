"""Append-only operations log recording every deletion attempt."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from scrub.utils import format_size

log = logging.getLogger(__name__)

DEFAULT_MAX_LOG_SIZE = 10 * 1024 * 1024
ENV_DISABLE = "SCRUB_NO_OPLOG"

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class OperationLog:
    """Audit trail of deletions, one line per item.

    Backed by a private :class:`logging.Logger` with a rotating file
    handler (``operations.log`` rolls over to ``operations.log.1``).
    Setting ``SCRUB_NO_OPLOG=1`` turns every call into a no-op.
    """

    def __init__(self, path: Path | str, max_bytes: int = DEFAULT_MAX_LOG_SIZE) -> None:
        self.path = Path(path)
        self.enabled = os.environ.get(ENV_DISABLE) != "1"
        self._logger = logging.Logger("scrub.oplog")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False
        self._handler: RotatingFileHandler | None = None

        if not self.enabled:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handler = RotatingFileHandler(self.path, maxBytes=max_bytes, backupCount=1, encoding="utf-8")
        self._handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s", datefmt=_TIME_FORMAT))
        self._logger.addHandler(self._handler)

    def log(self, operation: str, path: str, size: int, error: BaseException | None = None) -> None:
        """Record one operation on *path*."""
        if self._handler is None:
            return
        if error is None:
            self._logger.info('OK %s path="%s" size=%s', operation, path, format_size(size))
        else:
            self._logger.info('ERROR %s path="%s" size=%s error="%s"', operation, path, format_size(size), error)

    def log_session(self, command: str) -> None:
        if self._handler is None:
            return
        self._logger.info("SESSION START: scrub %s", command)

    def log_summary(self, freed: int, files: int, error_count: int) -> None:
        if self._handler is None:
            return
        self._logger.info("SESSION END: freed=%s files=%d errors=%d", format_size(freed), files, error_count)

    def close(self) -> None:
        if self._handler is not None:
            self._logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None

    def __enter__(self) -> OperationLog:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
