#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Generic candidate ranking pipeline.

Every ranking flow has the same shape: score each candidate with a
domain-specific signal extractor, keep those clearing a threshold, sort,
truncate. Ordering is total score descending, then candidate recency
(most recent first), then original fetch order, so identical inputs always
produce identical output.

Per-candidate lookups that may fail (e.g. resolving a chunk's parent
proposal) go through Enrichment so the failure stays visible on the
result instead of aborting the request.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from proposal_ranking.errors import RankingError
from proposal_ranking.scoring.signals import ScoreResult, SignalScorer
from proposal_ranking.scoring.text import parse_date

logger = logging.getLogger("proposal_ranking.scoring.pipeline")


@dataclass
class Enrichment:
    """Outcome of a best-effort per-candidate lookup."""
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self):
        return self.error is None

    @classmethod
    def attempt(cls, lookup, *args, **kwargs):
        """Run ``lookup``; engine errors become a failed Enrichment."""
        try:
            return cls(value=lookup(*args, **kwargs))
        except RankingError as exc:
            return cls(error=exc.message)


@dataclass
class RankedList:
    """Ordered pipeline output plus the counts behind it."""
    results: List[ScoreResult] = field(default_factory=list)
    candidates_scored: int = 0
    total_matches: int = 0

    def __iter__(self):
        return iter(self.results)

    def __len__(self):
        return len(self.results)

    def __getitem__(self, index):
        return self.results[index]


def _recency_key(candidate, recency_field):
    moment = parse_date(candidate.get(recency_field)) if recency_field else None
    # Undated candidates sort after dated ones
    return -moment.timestamp() if moment else float("inf")


def rank_candidates(candidates, extract_signals: Callable[[dict], SignalScorer],
                    tiers, min_score=None, strict=False, max_score=None,
                    max_results=None, recency_field="created_date",
                    enrichment_error: Optional[Callable[[dict], Optional[str]]] = None):
    """Score, filter, sort and truncate ``candidates``.

    Args:
        candidates: Records in fetch order.
        extract_signals: Returns a populated SignalScorer for one candidate.
        tiers: ConfidenceTiers for the pipeline.
        min_score: Inclusion threshold; None keeps every candidate.
        strict: Require total > min_score instead of >=.
        max_score: Clamp for the reported total.
        max_results: Truncation length; None keeps all.
        recency_field: Date field used as the first tie-breaker.
        enrichment_error: Optional callback reporting a degraded lookup.

    Returns:
        RankedList.
    """
    scored = []
    for index, candidate in enumerate(candidates):
        scorer = extract_signals(candidate)
        total = scorer.total
        if max_score is not None:
            total = min(total, max_score)
        if min_score is not None:
            passed = total > min_score if strict else total >= min_score
            if not passed:
                continue
        result = ScoreResult(
            candidate=candidate,
            total_score=round(total, 4),
            reasons=scorer.reasons,
            confidence=tiers.tier(total),
            breakdown=scorer.breakdown(),
            enrichment_error=enrichment_error(candidate) if enrichment_error else None,
        )
        scored.append((-result.total_score, _recency_key(candidate, recency_field),
                       index, result))

    scored.sort(key=lambda item: item[:3])
    results = [item[3] for item in scored]
    total_matches = len(results)
    if max_results is not None:
        results = results[:max(0, int(max_results))]

    logger.debug("Ranked %d candidates: %d matched, %d returned",
                 len(candidates), total_matches, len(results))
    return RankedList(results=results, candidates_scored=len(candidates),
                      total_matches=total_matches)
