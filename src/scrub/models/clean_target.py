"""Clean target dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

CATEGORIES = ("user", "browser", "dev", "system")
RISK_LEVELS = ("low", "medium", "high")


@dataclass(frozen=True, slots=True)
class CleanTarget:
    """Static description of one cleanup category.

    ``paths`` may contain environment-variable references (``%TEMP%``,
    ``$HOME``, ``${XDG_CACHE_HOME}``, a leading ``~``) and glob wildcards.
    They are expanded at scan time, never here.
    """

    name: str
    paths: tuple[str, ...] = field(default_factory=tuple)
    description: str = ""
    requires_elevated_privilege: bool = False
    category: str = "user"
    risk_level: str = "low"

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("clean target needs a name")
        if self.category not in CATEGORIES:
            raise ValueError(f"unknown category {self.category!r} for target {self.name!r}")
        if self.risk_level not in RISK_LEVELS:
            raise ValueError(f"unknown risk level {self.risk_level!r} for target {self.name!r}")
        # Accept any iterable of strings but store an immutable tuple.
        object.__setattr__(self, "paths", tuple(self.paths))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CleanTarget:
        """Build a target from a JSON-style record.

        Raises:
            ValueError: On a missing name or an unknown category/risk level.
        """
        paths = data.get("paths", [])
        if isinstance(paths, str):
            paths = [paths]
        return cls(
            name=str(data.get("name", "")),
            paths=tuple(str(p) for p in paths),
            description=str(data.get("description", "")),
            requires_elevated_privilege=bool(data.get("requires_elevated_privilege", False)),
            category=str(data.get("category", "user")),
            risk_level=str(data.get("risk_level", "low")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "paths": list(self.paths),
            "description": self.description,
            "requires_elevated_privilege": self.requires_elevated_privilege,
            "category": self.category,
            "risk_level": self.risk_level,
        }
