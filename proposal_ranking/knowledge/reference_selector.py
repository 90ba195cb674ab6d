#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Adaptive reference selection from proposal history and quality feedback.

Picks the past proposals most worth feeding to the writer as reference
material. Every won/submitted/lost proposal in the organization is scored:

    status base        won 100, submitted 50, lost 25
    quality            average feedback rating x 20
    section quality    average rating for the requested section x 15
    usage              feedback entries citing the proposal x 2 (max 20)
    recency            10 - months since created (never negative)

Quality feedback links back to proposals through its reference_proposal_ids
list, so one feedback entry can credit several references.

Usage:
    python -m proposal_ranking.knowledge.reference_selector --org ORG-1 \
        [--proposal PROP-9] [--section-type technical_approach] --json
    python -m proposal_ranking.knowledge.reference_selector --org ORG-1 --quality
"""

import argparse
import json
import logging
import math
import sys

from proposal_ranking.errors import RankingError, as_number, require
from proposal_ranking.scoring.pipeline import Enrichment, rank_candidates
from proposal_ranking.scoring.signals import SignalScorer
from proposal_ranking.scoring.text import parse_date, utcnow
from proposal_ranking.scoring.weights import get_weights
from proposal_ranking.store.entity_store import resolve_store

logger = logging.getLogger("proposal_ranking.knowledge.reference_selector")

REFERENCE_STATUSES = ("won", "submitted", "lost")
QUALITY_SUMMARY_LIMIT = 5


def _average(values):
    return sum(values) / len(values) if values else None


def aggregate_feedback(feedback, section_type=None):
    """Group quality feedback by referenced proposal.

    Returns:
        dict of proposal_id -> {usage_count, average_rating,
        section_average_rating}. Unrated entries count as usage only.
    """
    grouped = {}
    for entry in feedback:
        rating = entry.get("quality_rating")
        for pid in entry.get("reference_proposal_ids") or []:
            stats = grouped.setdefault(pid, {"usage_count": 0, "ratings": [],
                                             "section_ratings": []})
            stats["usage_count"] += 1
            if rating is None:
                continue
            stats["ratings"].append(float(rating))
            if section_type and entry.get("section_type") == section_type:
                stats["section_ratings"].append(float(rating))

    return {
        pid: {
            "usage_count": stats["usage_count"],
            "average_rating": _average(stats["ratings"]),
            "section_average_rating": _average(stats["section_ratings"]),
        }
        for pid, stats in grouped.items()
    }


def months_since(value, now=None):
    """Whole 30-day months elapsed since ``value``, or None if undated."""
    created = parse_date(value)
    if created is None:
        return None
    return max(0, ((now or utcnow()) - created).days // 30)


def score_reference(proposal, stats, section_type=None, prioritize_winners=True,
                    weights=None, now=None):
    """Build the signal set for one candidate reference proposal."""
    w = weights or get_weights().references
    scorer = SignalScorer()
    stats = stats or {}

    status = proposal.get("status")
    base_status = status
    if status == "won" and not prioritize_winners:
        base_status = "submitted"
    label = "winning proposal" if status == "won" and prioritize_winners else f"{status} proposal"
    scorer.add("status", w.status_base.get(base_status, 0), label)

    average = stats.get("average_rating")
    if average is not None:
        scorer.add("quality", average * w.quality_multiplier,
                   f"average quality {average:.1f}")

    section_average = stats.get("section_average_rating")
    if section_type and section_average is not None:
        scorer.add("section_quality", section_average * w.section_quality_multiplier,
                   f"{section_type} quality {section_average:.1f}")

    usage = stats.get("usage_count") or 0
    if usage:
        scorer.add("usage", min(usage * w.usage_multiplier, w.usage_cap),
                   f"used {usage} times")

    months = months_since(proposal.get("created_date"), now)
    if months is not None:
        scorer.add("recency", max(0, w.recency_months - months), "recent")

    return scorer


def recommendation_reason(proposal, scorer, stats, weights=None):
    """Human-readable summary of the signals that fired for a reference."""
    w = weights or get_weights().references
    parts = []
    if "winning proposal" in scorer.reasons:
        parts.append("winning proposal")
    average = (stats or {}).get("average_rating")
    if average is not None and average >= w.high_quality_rating:
        parts.append(f"high quality ({average:.1f}⭐)")
    usage = (stats or {}).get("usage_count") or 0
    if usage >= w.proven_usage_count:
        parts.append(f"proven track record ({usage} uses)")
    if scorer.fired("recency"):
        parts.append("recent")
    if not parts:
        return "Relevant past proposal"
    return ", ".join(parts)


def select_adaptive_references(organization_id=None, current_proposal_id=None,
                               section_type=None, max_references=None,
                               prioritize_winners=True, store=None, db_path=None,
                               weights=None, now=None):
    """Rank past proposals as reference material for a drafting task.

    Args:
        organization_id: Owning organization (required).
        current_proposal_id: Proposal being drafted, excluded from candidates.
        section_type: Optional section for the section-quality signal.
        max_references: Result cap (default 5).
        prioritize_winners: When False, won proposals get the submitted base.
        store: Optional entity store.
        db_path: Optional database path override.
        weights: Optional ReferenceWeights.
        now: Reference time for the recency signal (defaults to UTC now).

    Returns:
        dict with status, references and metadata; ``reason`` is
        "no_candidates" when nothing qualifies.
    """
    require({"organization_id": organization_id}, "organization_id")
    w = weights or get_weights().references
    max_references = as_number(max_references, "max_references",
                               w.default_max_references)
    now = now or utcnow()

    store = resolve_store(store, db_path)
    query = {"organization_id": organization_id,
             "status": {"$in": list(REFERENCE_STATUSES)}}
    if current_proposal_id:
        query["id"] = {"$ne": current_proposal_id}
    proposals = store.filter("Proposal", query, sort="-created_date",
                             limit=w.candidate_limit)
    feedback = store.filter("QualityFeedback", {"organization_id": organization_id})
    stats = aggregate_feedback(feedback, section_type)

    scorers = {}

    def extract(proposal):
        scorer = score_reference(proposal, stats.get(proposal["id"]), section_type,
                                 prioritize_winners, w, now)
        scorers[proposal["id"]] = scorer
        return scorer

    ranked = rank_candidates(proposals, extract, tiers=w.tiers,
                             max_results=max_references)

    metadata = {
        "total_candidates": len(proposals),
        "references_returned": len(ranked),
        "feedback_records": len(feedback),
        "section_type": section_type,
        "prioritize_winners": bool(prioritize_winners),
    }
    if ranked.candidates_scored == 0:
        logger.info("No reference candidates for org %s", organization_id)
        return {"status": "success", "references": [], "reason": "no_candidates",
                "metadata": metadata}

    references = []
    for rank, r in enumerate(ranked, 1):
        proposal = r.candidate
        proposal_stats = stats.get(proposal["id"]) or {}
        references.append({
            "proposal_id": proposal["id"],
            "proposal_name": proposal.get("proposal_name"),
            "status": proposal.get("status"),
            "agency_name": proposal.get("agency_name"),
            "confidence_score": min(100, max(0, math.floor(r.total_score + 0.5))),
            "rank": rank,
            "recommendation_reason": recommendation_reason(
                proposal, scorers[proposal["id"]], proposal_stats, w),
            "metadata": {
                "total_score": r.total_score,
                "confidence": r.confidence,
                "score_breakdown": r.breakdown,
                "average_quality_rating": proposal_stats.get("average_rating"),
                "section_quality_rating": proposal_stats.get("section_average_rating"),
                "usage_count": proposal_stats.get("usage_count", 0),
                "months_since_created": months_since(proposal.get("created_date"), now),
                "project_type": proposal.get("project_type"),
            },
        })

    logger.info("Adaptive references for org %s: %d candidates, %d returned",
                organization_id, len(proposals), len(references))
    return {"status": "success", "references": references, "metadata": metadata}


def summarize_reference_quality(organization_id=None, section_type=None,
                                store=None, db_path=None):
    """Feedback statistics per referenced proposal.

    Returns the five best-rated references (ties by usage) and the average
    rating of RAG-assisted versus unassisted generations.
    """
    require({"organization_id": organization_id}, "organization_id")
    store = resolve_store(store, db_path)
    feedback = store.filter("QualityFeedback", {"organization_id": organization_id},
                            sort="created_date")
    stats = aggregate_feedback(feedback, section_type)

    rated = [(pid, s) for pid, s in stats.items() if s["average_rating"] is not None]
    rated.sort(key=lambda item: (-item[1]["average_rating"],
                                 -item[1]["usage_count"], str(item[0])))

    top = []
    for pid, s in rated[:QUALITY_SUMMARY_LIMIT]:
        proposal = Enrichment.attempt(store.get, "Proposal", pid)
        top.append({
            "proposal_id": pid,
            "proposal_name": (proposal.value or {}).get("proposal_name"),
            "usage_count": s["usage_count"],
            "average_rating": round(s["average_rating"], 2),
            "section_average_rating": (round(s["section_average_rating"], 2)
                                       if s["section_average_rating"] is not None
                                       else None),
            "lookup_error": proposal.error,
        })

    def avg_for(used_rag):
        ratings = [float(f["quality_rating"]) for f in feedback
                   if f.get("quality_rating") is not None
                   and bool(f.get("used_rag")) is used_rag]
        value = _average(ratings)
        return round(value, 2) if value is not None else None

    return {
        "status": "success",
        "top_references": top,
        "rag_average_rating": avg_for(True),
        "non_rag_average_rating": avg_for(False),
        "feedback_count": len(feedback),
        "referenced_proposals": len(stats),
        "section_type": section_type,
    }


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Select reference proposals")
    parser.add_argument("--org", required=True, help="Organization ID")
    parser.add_argument("--proposal", help="Current proposal ID (excluded)")
    parser.add_argument("--section-type", help="Section type for quality scoring")
    parser.add_argument("--limit", type=int, help="Max references (default: 5)")
    parser.add_argument("--no-prioritize-winners", action="store_true",
                        help="Score won proposals like submitted ones")
    parser.add_argument("--quality", action="store_true",
                        help="Show the reference quality summary instead")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--db-path", help="Override database path")
    args = parser.parse_args()

    try:
        if args.quality:
            result = summarize_reference_quality(
                organization_id=args.org, section_type=args.section_type,
                db_path=args.db_path)
        else:
            result = select_adaptive_references(
                organization_id=args.org,
                current_proposal_id=args.proposal,
                section_type=args.section_type,
                max_references=args.limit,
                prioritize_winners=not args.no_prioritize_winners,
                db_path=args.db_path,
            )
    except RankingError as exc:
        if args.json:
            print(json.dumps({"error": exc.message}, indent=2))
        else:
            print(f"Error: {exc.message}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(result, indent=2, default=str))
        return

    if args.quality:
        print(f"RAG avg: {result['rag_average_rating']}  "
              f"non-RAG avg: {result['non_rag_average_rating']}")
        for ref in result["top_references"]:
            print(f"  {ref['proposal_id']}: {ref['average_rating']} "
                  f"({ref['usage_count']} uses)")
        return

    if not result["references"]:
        print("No reference candidates")
    for ref in result["references"]:
        print(f"  {ref['rank']}. {ref['proposal_name']} [{ref['status']}] "
              f"{ref['confidence_score']}: {ref['recommendation_reason']}")


if __name__ == "__main__":
    main()
