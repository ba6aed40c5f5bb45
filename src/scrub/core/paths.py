"""Environment-variable expansion and path-flavour helpers.

Expansion and matching are kept apart: :func:`expand_env` only substitutes
tokens, while callers normalize with the flavour module (``ntpath`` or
``posixpath``) and match with :mod:`fnmatch`.
"""

from __future__ import annotations

import os
import re
from types import ModuleType
from typing import Mapping

# %VAR% (Windows), ${VAR} and $VAR (POSIX). Windows names may carry
# parentheses, e.g. %ProgramFiles(x86)%.
_ENV_RE = re.compile(
    r"%(?P<win>[A-Za-z_][A-Za-z0-9_()]*)%"
    r"|\$\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}"
    r"|\$(?P<bare>[A-Za-z_][A-Za-z0-9_]*)"
)

GLOB_CHARS = frozenset("*?[")


def _lookup(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value is None:
        value = environ.get(name.upper())
    return value


def expand_env(pattern: str, environ: Mapping[str, str] | None = None) -> str:
    """Substitute environment-variable references in *pattern*.

    A leading ``~`` expands to ``HOME`` (or ``USERPROFILE``). Unknown
    variables are left verbatim so a typo never widens a pattern to
    something unexpected.
    """
    env = os.environ if environ is None else environ

    def _replace(match: re.Match[str]) -> str:
        name = match.group("win") or match.group("braced") or match.group("bare")
        value = _lookup(env, name)
        return match.group(0) if value is None else value

    expanded = _ENV_RE.sub(_replace, pattern)

    if expanded == "~" or expanded.startswith(("~/", "~\\")):
        home = env.get("HOME") or env.get("USERPROFILE") or os.path.expanduser("~")
        expanded = home + expanded[1:]
    return expanded


def has_glob(pattern: str) -> bool:
    return any(ch in GLOB_CHARS for ch in pattern)


def flavour_seps(flavour: ModuleType) -> tuple[str, ...]:
    """Every separator character the flavour accepts."""
    if flavour.altsep:
        return (flavour.sep, flavour.altsep)
    return (flavour.sep,)


def canonical(path: str, flavour: ModuleType) -> str:
    """Cleaned, separator-normalized, lower-cased form used for comparisons."""
    return flavour.normpath(path).lower()


def is_nested_or_equal(candidate: str, parent: str, flavour: ModuleType) -> bool:
    """Separator-bounded prefix test on canonical paths.

    ``/var/lib`` contains ``/var/lib/apt`` but not ``/var/library``.
    """
    if candidate == parent:
        return True
    sep = flavour.sep
    prefix = parent if parent.endswith(sep) else parent + sep
    return (candidate + sep).startswith(prefix)
