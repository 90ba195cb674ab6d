#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Signal accumulation for multi-signal relevance scoring.

A scorer collects named, pre-weighted contributions and sums them. No
normalization happens here: callers apply their own weights and caps
("up to 40 points") before contributing. Totals never drop below zero.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CONFIDENCE_HIGH = "high"
CONFIDENCE_MEDIUM = "medium"
CONFIDENCE_LOW = "low"


@dataclass(frozen=True)
class SignalContribution:
    """One scored factor."""
    name: str
    points: float
    reason: str


class SignalScorer:
    """Accumulates contributions for a single candidate."""

    def __init__(self):
        self.signals: List[SignalContribution] = []

    def add(self, name, points, reason):
        """Record a contribution. Zero or negative points are ignored."""
        if points is None or points <= 0:
            return
        self.signals.append(SignalContribution(name, float(points), reason))

    @property
    def total(self) -> float:
        return max(0.0, sum(s.points for s in self.signals))

    @property
    def reasons(self) -> List[str]:
        return [s.reason for s in self.signals]

    def fired(self, name) -> bool:
        return any(s.name == name for s in self.signals)

    def breakdown(self) -> Dict[str, float]:
        out: Dict[str, float] = {}
        for s in self.signals:
            out[s.name] = round(out.get(s.name, 0.0) + s.points, 4)
        return out


def score(signals):
    """Sum a list of contributions into ``{"total", "reasons"}``."""
    scorer = SignalScorer()
    for s in signals:
        scorer.add(s.name, s.points, s.reason)
    return {"total": scorer.total, "reasons": scorer.reasons}


@dataclass
class ScoreResult:
    """A scored candidate as it leaves a ranking pipeline."""
    candidate: Dict[str, Any]
    total_score: float
    reasons: List[str] = field(default_factory=list)
    confidence: str = CONFIDENCE_LOW
    breakdown: Dict[str, float] = field(default_factory=dict)
    enrichment_error: Optional[str] = None

    @property
    def candidate_id(self):
        return self.candidate.get("id")
