"""Result aggregation and summary counts."""
from itertools import chain
from typing import Iterable, List, Optional, Sequence

from ..models import ProcessingResult, ProcessingStatus, RunResult, Summary


def generate_summary(results: Iterable[ProcessingResult]) -> Summary:
    counts = {status: 0 for status in ProcessingStatus}
    for result in results:
        counts[result.status] += 1
    return Summary(
        successful=counts[ProcessingStatus.SUCCESS],
        failed=counts[ProcessingStatus.ERROR],
        skipped=counts[ProcessingStatus.SKIPPED],
        dry_run=counts[ProcessingStatus.DRY_RUN],
    )


def aggregate_results(
    invalid_results: Sequence[ProcessingResult],
    group_results: Iterable[Sequence[ProcessingResult]],
) -> List[ProcessingResult]:
    """Invalid files first, then each SKU group in submission order."""
    return list(chain(invalid_results, *group_results))


def build_run_result(
    invalid_results: Sequence[ProcessingResult],
    group_results: Iterable[Sequence[ProcessingResult]],
    pattern_analysis: Optional[object] = None,
) -> RunResult:
    results = aggregate_results(invalid_results, group_results)
    return RunResult(
        results=tuple(results),
        summary=generate_summary(results),
        pattern_analysis=pattern_analysis,
    )
