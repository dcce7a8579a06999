"""
Pattern Analyzer - flags SKUs that probably miss images.

Compares per-SKU image counts across the whole batch. Advisory only: the
result never changes what gets uploaded.
"""
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging
import math

from ..models import ParsedFile

logger = logging.getLogger(__name__)

MIN_SKUS_FOR_ANALYSIS = 2
CONSISTENCY_THRESHOLD = 0.5


@dataclass(frozen=True)
class MissingImageWarning:
    sku: str
    expected_count: int
    actual_count: int
    missing_numbers: Tuple[int, ...]
    has_gaps: bool

    def describe(self) -> str:
        missing = format_missing_numbers(list(self.missing_numbers))
        kind = "gaps" if self.has_gaps else "fewer images than expected"
        return (
            f"{self.sku}: {self.actual_count}/{self.expected_count} images "
            f"({kind}), missing {missing}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sku": self.sku,
            "expectedCount": self.expected_count,
            "actualCount": self.actual_count,
            "missingNumbers": list(self.missing_numbers),
            "hasGaps": self.has_gaps,
        }


@dataclass(frozen=True)
class PatternAnalysis:
    most_common_count: int
    total_skus: int
    skus_with_expected_count: int
    warnings: Tuple[MissingImageWarning, ...]
    is_consistent_pattern: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mostCommonCount": self.most_common_count,
            "totalSkus": self.total_skus,
            "skusWithExpectedCount": self.skus_with_expected_count,
            "warnings": [w.to_dict() for w in self.warnings],
            "isConsistentPattern": self.is_consistent_pattern,
        }


def most_common_count(counts: Iterable[int]) -> Tuple[int, int]:
    """
    Return (count, frequency) of the mode of per-SKU image counts.

    Ties go to the smallest count.
    """
    frequency = Counter(counts)
    if not frequency:
        return 0, 0
    count, freq = min(frequency.items(), key=lambda item: (-item[1], item[0]))
    return count, freq


def find_gaps(sort_orders: List[int]) -> List[int]:
    """Integers strictly between min and max that are absent."""
    present = set(sort_orders)
    return [n for n in range(min(present), max(present) + 1) if n not in present]


def analyze_image_pattern(files: Iterable[ParsedFile]) -> Optional[PatternAnalysis]:
    """
    Detect SKUs with gaps in their sort orders or fewer images than peers.

    Returns None when fewer than two SKUs are present.
    """
    sku_groups: Dict[str, List[int]] = {}
    for parsed in files:
        if not parsed.is_valid:
            continue
        sku_groups.setdefault(parsed.sku, []).append(parsed.sort_order)

    if len(sku_groups) < MIN_SKUS_FOR_ANALYSIS:
        return None

    expected, max_frequency = most_common_count(len(orders) for orders in sku_groups.values())
    is_consistent = max_frequency >= math.ceil(CONSISTENCY_THRESHOLD * len(sku_groups))

    warnings = []
    for sku, sort_orders in sku_groups.items():
        actual = len(sort_orders)
        missing = find_gaps(sort_orders)
        has_gaps = bool(missing)
        has_fewer = is_consistent and actual < expected

        # Without gaps, assume the missing images would have come last
        if has_fewer and not has_gaps:
            last = max(sort_orders)
            missing = list(range(last + 1, last + 1 + expected - actual))

        if has_gaps or has_fewer:
            warnings.append(MissingImageWarning(
                sku=sku,
                expected_count=expected,
                actual_count=actual,
                missing_numbers=tuple(missing),
                has_gaps=has_gaps,
            ))

    warnings.sort(key=lambda w: w.sku)
    for warning in warnings:
        logger.warning(f"Possible missing images: {warning.describe()}")

    return PatternAnalysis(
        most_common_count=expected,
        total_skus=len(sku_groups),
        skus_with_expected_count=max_frequency,
        warnings=tuple(warnings),
        is_consistent_pattern=is_consistent,
    )


def format_missing_numbers(numbers: List[int]) -> str:
    """
    Render ascending integers, collapsing consecutive runs.

    [1, 2, 3, 5] -> "01-03, 05"
    """
    if not numbers:
        return ""

    groups = []
    start = end = numbers[0]
    for n in numbers[1:]:
        if n == end + 1:
            end = n
            continue
        groups.append(_format_run(start, end))
        start = end = n
    groups.append(_format_run(start, end))
    return ", ".join(groups)


def _format_run(start: int, end: int) -> str:
    if start == end:
        return f"{start:02d}"
    return f"{start:02d}-{end:02d}"
