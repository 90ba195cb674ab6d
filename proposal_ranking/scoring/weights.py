#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Named weight configuration for every ranking pipeline.

Defaults below are the production scoring policy. args/ranking_weights.yaml
(or the file named by PROPOSAL_RANKING_WEIGHTS_PATH) may override any key
per pipeline section:

    past_performance:
      agency_exact: 35
      tiers: {high: 85, medium: 60}

The parsed configuration is immutable and loaded once per process;
reload_weights() drops the cached copy.
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Tuple

import yaml

from proposal_ranking.scoring.signals import (
    CONFIDENCE_HIGH, CONFIDENCE_LOW, CONFIDENCE_MEDIUM,
)

logger = logging.getLogger("proposal_ranking.scoring.weights")

BASE_DIR = Path(__file__).resolve().parent.parent.parent
WEIGHTS_PATH = Path(os.environ.get(
    "PROPOSAL_RANKING_WEIGHTS_PATH",
    str(BASE_DIR / "args" / "ranking_weights.yaml"),
))


def _frozen(mapping):
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ConfidenceTiers:
    """Score breakpoints for the high/medium/low buckets."""
    high: float
    medium: float

    def tier(self, score):
        if score >= self.high:
            return CONFIDENCE_HIGH
        if score >= self.medium:
            return CONFIDENCE_MEDIUM
        return CONFIDENCE_LOW


@dataclass(frozen=True)
class PastPerformanceWeights:
    contract_number_match: float = 100
    title_similarity_threshold: float = 60
    title_similarity_multiplier: float = 0.5
    title_min_token_length: int = 4
    agency_exact: float = 30
    agency_partial: float = 20
    date_overlap: float = 20
    min_score: float = 40
    max_score: float = 100
    max_results: int = 5
    tiers: ConfidenceTiers = ConfidenceTiers(high=80, medium=60)


@dataclass(frozen=True)
class ResourceWeights:
    file_name_exact: float = 50
    file_name_partial: float = 30
    title_exact: float = 30
    title_similar: float = 20
    title_similarity_threshold: float = 0.7
    resource_type_match: float = 10
    file_size_match: float = 10
    file_size_tolerance: float = 0.01
    min_score: float = 40
    max_score: float = 100
    max_results: int = 5
    tiers: ConfidenceTiers = ConfidenceTiers(high=80, medium=60)


@dataclass(frozen=True)
class PartnerWeights:
    name_similarity_threshold: float = 0.8
    corporate_suffixes: Tuple[str, ...] = (
        "inc", "llc", "corp", "corporation", "ltd", "limited", "co",
    )


@dataclass(frozen=True)
class ChunkWeights:
    text_match: float = 40
    keyword_match: float = 20
    same_agency: float = 15
    same_project_type: float = 10
    winning_proposal: float = 15
    min_token_length: int = 4
    max_score: float = 100
    candidate_limit: int = 500
    default_max_results: int = 20
    default_min_relevance: float = 30
    tiers: ConfidenceTiers = ConfidenceTiers(high=70, medium=50)


@dataclass(frozen=True)
class ReferenceWeights:
    status_base: Mapping[str, float] = field(default_factory=lambda: _frozen({
        "won": 100, "submitted": 50, "lost": 25,
    }))
    quality_multiplier: float = 20
    section_quality_multiplier: float = 15
    usage_multiplier: float = 2
    usage_cap: float = 20
    recency_months: float = 10
    candidate_limit: int = 500
    default_max_references: int = 5
    high_quality_rating: float = 4.0
    proven_usage_count: int = 3
    tiers: ConfidenceTiers = ConfidenceTiers(high=80, medium=50)


@dataclass(frozen=True)
class SupplementaryWeights:
    supplementary_base: float = 70
    supplementary_types: Mapping[str, float] = field(default_factory=lambda: _frozen({
        "q_a_response": 95, "amendment": 90, "sow": 85, "pws": 85,
        "clarification": 80,
    }))
    latest_version_bonus: float = 5
    amendment_multiplier: float = 2
    amendment_cap: float = 10
    primary_base: float = 50
    primary_types: Mapping[str, float] = field(default_factory=lambda: _frozen({
        "rfp": 75, "rfq": 75, "sow": 70, "pws": 70,
    }))
    relevance_max: float = 20
    min_token_length: int = 4
    default_max_documents: int = 10
    tiers: ConfidenceTiers = ConfidenceTiers(high=85, medium=70)


@dataclass(frozen=True)
class ContextWeights:
    same_agency: float = 40
    same_project_type: float = 30
    winning_proposal: float = 20
    submitted_proposal: float = 10
    similar_value: float = 10
    value_tolerance: float = 0.5
    has_target_section: float = 15
    comprehensive_content: float = 5
    comprehensive_chars: int = 50000
    chars_per_token: int = 4
    section_chars: int = 5000
    section_chars_small_budget: int = 2000
    small_budget_tokens: int = 50000
    tiers: ConfidenceTiers = ConfidenceTiers(high=70, medium=40)
    token_limits: Mapping[str, int] = field(default_factory=lambda: _frozen({
        "gemini": 100000, "claude": 100000, "chatgpt": 50000,
        "gpt-4": 50000, "default": 30000,
    }))


@dataclass(frozen=True)
class RankingWeights:
    past_performance: PastPerformanceWeights = field(default_factory=PastPerformanceWeights)
    resources: ResourceWeights = field(default_factory=ResourceWeights)
    partners: PartnerWeights = field(default_factory=PartnerWeights)
    chunks: ChunkWeights = field(default_factory=ChunkWeights)
    references: ReferenceWeights = field(default_factory=ReferenceWeights)
    supplementary: SupplementaryWeights = field(default_factory=SupplementaryWeights)
    context: ContextWeights = field(default_factory=ContextWeights)


def _apply_overrides(section_name, default, overrides):
    """Return ``default`` with YAML overrides applied, validating keys."""
    if not overrides:
        return default
    if not isinstance(overrides, dict):
        raise ValueError(f"Weights section '{section_name}' must be a mapping")

    known = {f.name: f for f in dataclasses.fields(default)}
    changes = {}
    for key, value in overrides.items():
        if key not in known:
            raise ValueError(f"Unknown weight '{section_name}.{key}'")
        current = getattr(default, key)
        if isinstance(current, ConfidenceTiers):
            merged = {"high": current.high, "medium": current.medium}
            merged.update(value or {})
            value = ConfidenceTiers(high=float(merged["high"]),
                                    medium=float(merged["medium"]))
        elif isinstance(current, Mapping):
            merged = dict(current)
            merged.update(value or {})
            value = _frozen(merged)
        elif isinstance(current, tuple):
            value = tuple(value or ())
        elif known[key].type is int:
            value = int(value)
        elif known[key].type is float:
            value = float(value)
        changes[key] = value
    return dataclasses.replace(default, **changes)


def weights_from_dict(data):
    """Build a RankingWeights from a parsed YAML mapping."""
    data = data or {}
    defaults = RankingWeights()
    sections = {f.name for f in dataclasses.fields(defaults)}
    unknown = set(data) - sections
    if unknown:
        raise ValueError(f"Unknown weight sections: {', '.join(sorted(unknown))}")
    return RankingWeights(**{
        name: _apply_overrides(name, getattr(defaults, name), data.get(name))
        for name in sections
    })


def load_weights_file(path):
    """Parse a weights YAML file. A missing file yields the defaults."""
    path = Path(path)
    if not path.exists():
        logger.info("Weights file not found at %s - using defaults", path)
        return RankingWeights()
    with open(path, "r", encoding="utf-8") as fh:
        return weights_from_dict(yaml.safe_load(fh) or {})


_WEIGHTS = None


def get_weights():
    """Process-wide weights, loaded from WEIGHTS_PATH on first use."""
    global _WEIGHTS
    if _WEIGHTS is None:
        _WEIGHTS = load_weights_file(WEIGHTS_PATH)
    return _WEIGHTS


def reload_weights():
    """Drop the cached configuration and load it again."""
    global _WEIGHTS
    _WEIGHTS = None
    return get_weights()
