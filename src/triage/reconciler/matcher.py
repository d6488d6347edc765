"""Greedy identity reconciliation between an observed ordering and canonical messages.

Each observation is processed in its original order and claims at most one
unused canonical message:

1. an exact ``external_id`` match, if one is unused;
2. otherwise the unused candidate with the highest weighted similarity
   ``0.7 * subject + 0.3 * sender``, accepted only above ``MIN_FUZZY_SCORE``.

Ties go to the first candidate in canonical-list order.  The assignment is
greedy and order-dependent rather than a globally optimal bipartite match;
near-duplicate observations can therefore pair suboptimally.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from triage.domain.models import (
    CanonicalMessage,
    ExternalObservation,
    MappingResult,
    QueueItem,
    validate_queue,
)
from triage.domain.types import MatchMethod
from triage.reconciler.similarity import extract_address, overlap_coefficient

logger = structlog.get_logger()

SUBJECT_WEIGHT: float = 0.7
SENDER_WEIGHT: float = 0.3
MIN_FUZZY_SCORE: float = 0.5


class MappingStats(BaseModel):
    """Summary counts for one reconciliation pass."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    observed: int
    matched: int
    unmatched: int
    exact: int
    fuzzy: int


def match_score(observation: ExternalObservation, candidate: CanonicalMessage) -> float:
    """Weighted subject/sender similarity between an observation and a candidate."""
    subject_sim = overlap_coefficient(observation.subject, candidate.subject)
    candidate_address = candidate.sender_address or candidate.sender
    sender_sim = overlap_coefficient(
        extract_address(observation.sender),
        extract_address(candidate_address),
    )
    return min(SUBJECT_WEIGHT * subject_sim + SENDER_WEIGHT * sender_sim, 1.0)


def _find_exact(
    external_id: str,
    canonical: Sequence[CanonicalMessage],
    used: set[str],
) -> CanonicalMessage | None:
    for candidate in canonical:
        if candidate.id == external_id and candidate.id not in used:
            return candidate
    return None


def _find_fuzzy(
    observation: ExternalObservation,
    canonical: Sequence[CanonicalMessage],
    used: set[str],
) -> tuple[CanonicalMessage | None, float]:
    best: CanonicalMessage | None = None
    best_score = 0.0
    for candidate in canonical:
        if candidate.id in used:
            continue
        score = match_score(observation, candidate)
        # Strict comparison keeps the first candidate on ties
        if score > best_score and score > MIN_FUZZY_SCORE:
            best = candidate
            best_score = score
    return best, best_score


def reconcile(
    observations: Sequence[ExternalObservation],
    canonical: Sequence[CanonicalMessage],
) -> list[MappingResult]:
    """Map every observation onto at most one unused canonical message.

    Args:
        observations: The scraped ordering, in the order it was observed.
        canonical: The authoritative message set.  Iteration order matters
            only for tie-breaking.

    Returns:
        One ``MappingResult`` per observation, in the same order as
        *observations*.  No canonical id appears in more than one result.
    """
    used: set[str] = set()
    results: list[MappingResult] = []

    for observation in observations:
        matched: CanonicalMessage | None = None
        method = MatchMethod.NONE
        confidence = 0.0

        if observation.external_id:
            matched = _find_exact(observation.external_id, canonical, used)
            if matched is not None:
                method = MatchMethod.EXACT
                confidence = 1.0

        if matched is None:
            matched, score = _find_fuzzy(observation, canonical, used)
            if matched is not None:
                method = MatchMethod.FUZZY
                confidence = score

        if matched is not None:
            used.add(matched.id)

        results.append(
            MappingResult(
                position=observation.position,
                matched=matched,
                method=method,
                confidence=confidence,
            )
        )

    logger.debug(
        "reconciliation_complete",
        observed=len(observations),
        canonical=len(canonical),
        matched=len(used),
    )
    return results


def ordered_canonical_ids(results: Iterable[MappingResult]) -> list[str]:
    """Return matched canonical ids sorted by observation position."""
    ordered = sorted(results, key=lambda r: r.position)
    return [r.matched.id for r in ordered if r.matched is not None]


def unmatched_positions(results: Iterable[MappingResult]) -> list[int]:
    """Return the positions of observations that found no canonical match."""
    return [r.position for r in results if r.matched is None]


def mapping_stats(results: Sequence[MappingResult]) -> MappingStats:
    """Summarize a reconciliation pass."""
    exact = sum(1 for r in results if r.method == MatchMethod.EXACT)
    fuzzy = sum(1 for r in results if r.method == MatchMethod.FUZZY)
    return MappingStats(
        observed=len(results),
        matched=exact + fuzzy,
        unmatched=len(results) - exact - fuzzy,
        exact=exact,
        fuzzy=fuzzy,
    )


def build_queue(
    canonical_ids: Sequence[str],
    canonical: Sequence[CanonicalMessage],
) -> list[QueueItem]:
    """Build a dense, 0-based queue from ordered canonical ids.

    Raises:
        QueueInvariantError: If an id repeats in *canonical_ids*.
        KeyError: If an id is not present in *canonical*.
    """
    by_id: dict[str, CanonicalMessage] = {}
    for message in canonical:
        by_id.setdefault(message.id, message)

    queue = [
        QueueItem(
            position=index,
            canonical_id=message_id,
            subject=by_id[message_id].subject,
            sender=by_id[message_id].sender,
            snippet=by_id[message_id].snippet,
        )
        for index, message_id in enumerate(canonical_ids)
    ]
    return validate_queue(queue)


def queue_in_canonical_order(canonical: Sequence[CanonicalMessage]) -> list[QueueItem]:
    """Build a queue that follows the backend's own order, dropping repeated ids."""
    seen: set[str] = set()
    ids: list[str] = []
    for message in canonical:
        if message.id not in seen:
            seen.add(message.id)
            ids.append(message.id)
    return build_queue(ids, canonical)
