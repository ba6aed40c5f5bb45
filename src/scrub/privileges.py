"""Detection of elevated privileges."""

from __future__ import annotations

import ctypes
import logging
import os

log = logging.getLogger(__name__)


def is_root() -> bool:
    """Check if the current process is running as root."""
    return hasattr(os, "geteuid") and os.geteuid() == 0


def is_elevated() -> bool:
    """True when running as root, or as an elevated administrator on Windows."""
    if os.name != "nt":
        return is_root()
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except (AttributeError, OSError):
        log.debug("Cannot query administrator status, assuming unprivileged")
        return False
