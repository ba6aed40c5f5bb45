"""Scrub data models."""

from scrub.models.clean_result import CleanResult
from scrub.models.clean_target import CATEGORIES, RISK_LEVELS, CleanTarget
from scrub.models.scan_result import CleanItem, ScanResult, items_to_result

__all__ = [
    "CATEGORIES",
    "RISK_LEVELS",
    "CleanItem",
    "CleanResult",
    "CleanTarget",
    "ScanResult",
    "items_to_result",
]
