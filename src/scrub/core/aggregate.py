"""Pure aggregation helpers over scan results."""

from __future__ import annotations

from scrub.models.scan_result import ScanResult


def total_size_all(results: list[ScanResult]) -> int:
    """Combined size in bytes across all results."""
    return sum(r.total_size for r in results)


def total_item_count(results: list[ScanResult]) -> int:
    return sum(r.item_count for r in results)


def group_by_category(results: list[ScanResult]) -> dict[str, list[ScanResult]]:
    """Group results by the high-level category of their first item.

    Results without items are dropped. Input order is preserved within
    each group.
    """
    groups: dict[str, list[ScanResult]] = {}
    for result in results:
        if result.items:
            groups.setdefault(result.items[0].category, []).append(result)
    return groups


def category_totals(results: list[ScanResult]) -> dict[str, tuple[int, int]]:
    """Map each category to ``(item_count, total_bytes)``."""
    return {
        category: (total_item_count(members), total_size_all(members))
        for category, members in group_by_category(results).items()
    }
