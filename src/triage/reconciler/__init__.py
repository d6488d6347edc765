"""Identity reconciliation between scraped ordering and canonical messages."""

from triage.reconciler.matcher import (
    MIN_FUZZY_SCORE,
    MappingStats,
    build_queue,
    mapping_stats,
    match_score,
    ordered_canonical_ids,
    queue_in_canonical_order,
    reconcile,
    unmatched_positions,
)
from triage.reconciler.similarity import extract_address, normalize, overlap_coefficient

__all__ = [
    "MIN_FUZZY_SCORE",
    "MappingStats",
    "build_queue",
    "extract_address",
    "mapping_stats",
    "match_score",
    "normalize",
    "ordered_canonical_ids",
    "overlap_coefficient",
    "queue_in_canonical_order",
    "reconcile",
    "unmatched_positions",
]
