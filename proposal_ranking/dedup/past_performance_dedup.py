#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Duplicate detection for past performance records.

Runs before a new record is created and flags existing records in the
organization that look like the same contract. Signals per candidate:

    contract number match  100  (exact after trim+lowercase; ends scoring)
    title word overlap     similarity% x 0.5, only when similarity > 60%
    customer agency        +30 exact, +20 when one contains the other
    period of performance  +20 when both date ranges overlap

Candidates scoring above 40 are reported (top 5). The check is advisory:
creation happens in a later request, so two concurrent submissions can both
pass it.

Usage:
    python -m proposal_ranking.dedup.past_performance_dedup --org ORG-1 \
        --title "Network Security Assessment" [--contract-number W91-123] --json
"""

import argparse
import json
import logging
import sys

from proposal_ranking.errors import RankingError, require
from proposal_ranking.scoring.pipeline import rank_candidates
from proposal_ranking.scoring.signals import CONFIDENCE_HIGH, SignalScorer
from proposal_ranking.scoring.text import normalize, parse_date, whitespace_tokens
from proposal_ranking.scoring.weights import get_weights
from proposal_ranking.store.entity_store import resolve_store

logger = logging.getLogger("proposal_ranking.dedup.past_performance")


def title_similarity(input_title, candidate_title, min_token_length=4):
    """Percentage of shared significant words between two titles.

    Words of at least ``min_token_length`` characters from the input title
    that also occur in the candidate title, divided by the longer title's
    word count (all words counted).
    """
    input_tokens = whitespace_tokens(input_title)
    candidate_tokens = whitespace_tokens(candidate_title)
    longest = max(len(input_tokens), len(candidate_tokens))
    if longest == 0:
        return 0.0
    candidate_set = set(candidate_tokens)
    common = [t for t in input_tokens
              if len(t) >= min_token_length and t in candidate_set]
    return len(common) * 100.0 / longest


def _periods_overlap(params, record):
    start = parse_date(params.get("pop_start_date"))
    end = parse_date(params.get("pop_end_date"))
    cand_start = parse_date(record.get("pop_start_date"))
    cand_end = parse_date(record.get("pop_end_date"))
    if not (start and end and cand_start and cand_end):
        return False
    return start <= cand_end and end >= cand_start


def score_past_performance(params, record, weights=None):
    """Build the signal set for one candidate record."""
    w = weights or get_weights().past_performance
    scorer = SignalScorer()

    contract = normalize(params.get("contract_number"))
    if contract and contract == normalize(record.get("contract_number")):
        scorer.add("contract_number", w.contract_number_match,
                   "Exact contract number match")
        return scorer

    similarity = title_similarity(params.get("title"), record.get("title"),
                                  w.title_min_token_length)
    if similarity > w.title_similarity_threshold:
        scorer.add("title", similarity * w.title_similarity_multiplier,
                   f"Similar title ({round(similarity)}% word overlap)")

    agency = normalize(params.get("customer_agency"))
    cand_agency = normalize(record.get("customer_agency"))
    if agency and cand_agency:
        if agency == cand_agency:
            scorer.add("agency", w.agency_exact, "Same customer agency")
        elif agency in cand_agency or cand_agency in agency:
            scorer.add("agency", w.agency_partial, "Related customer agency")

    if _periods_overlap(params, record):
        scorer.add("period_of_performance", w.date_overlap,
                   "Overlapping period of performance")

    return scorer


def check_past_performance_duplicates(organization_id=None, title=None,
                                      contract_number=None, customer_agency=None,
                                      pop_start_date=None, pop_end_date=None,
                                      exclude_id=None, store=None, db_path=None,
                                      weights=None):
    """Find existing past performance records that may duplicate a new one.

    Args:
        organization_id: Owning organization (required).
        title: Title of the record being created (required).
        contract_number: Optional contract number.
        customer_agency: Optional customer agency name.
        pop_start_date: Optional period of performance start (YYYY-MM-DD).
        pop_end_date: Optional period of performance end (YYYY-MM-DD).
        exclude_id: Record being edited, never reported against itself.
        store: Optional entity store; defaults to the sqlite store.
        db_path: Optional database path override.
        weights: Optional PastPerformanceWeights.

    Returns:
        dict with status, duplicates, has_high_confidence_duplicate,
        total_found.

    Raises:
        ValidationError: organization_id or title missing.
    """
    params = {
        "organization_id": organization_id, "title": title,
        "contract_number": contract_number, "customer_agency": customer_agency,
        "pop_start_date": pop_start_date, "pop_end_date": pop_end_date,
    }
    require(params, "organization_id", "title")
    w = weights or get_weights().past_performance

    store = resolve_store(store, db_path)
    records = store.filter("PastPerformance", {"organization_id": organization_id})
    if exclude_id:
        records = [r for r in records if r.get("id") != exclude_id]

    ranked = rank_candidates(
        records,
        lambda record: score_past_performance(params, record, w),
        tiers=w.tiers,
        min_score=w.min_score,
        strict=True,
        max_score=w.max_score,
        max_results=w.max_results,
    )

    duplicates = [{
        "record": r.candidate,
        "match_score": r.total_score,
        "match_reasons": r.reasons,
        "confidence": r.confidence,
    } for r in ranked]

    logger.info("Past performance duplicate check for org %s: %d candidates, "
                "%d possible duplicates", organization_id,
                ranked.candidates_scored, ranked.total_matches)

    return {
        "status": "success",
        "duplicates": duplicates,
        "has_high_confidence_duplicate": any(
            d["confidence"] == CONFIDENCE_HIGH for d in duplicates),
        "total_found": ranked.total_matches,
    }


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Check a past performance record for duplicates")
    parser.add_argument("--org", required=True, help="Organization ID")
    parser.add_argument("--title", required=True, help="Record title")
    parser.add_argument("--contract-number", help="Contract number")
    parser.add_argument("--agency", help="Customer agency")
    parser.add_argument("--pop-start", help="Period of performance start (YYYY-MM-DD)")
    parser.add_argument("--pop-end", help="Period of performance end (YYYY-MM-DD)")
    parser.add_argument("--exclude-id", help="Record being edited")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--db-path", help="Override database path")
    args = parser.parse_args()

    try:
        result = check_past_performance_duplicates(
            organization_id=args.org,
            title=args.title,
            contract_number=args.contract_number,
            customer_agency=args.agency,
            pop_start_date=args.pop_start,
            pop_end_date=args.pop_end,
            exclude_id=args.exclude_id,
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

    print(f"Found {result['total_found']} possible duplicate(s):")
    for i, dup in enumerate(result["duplicates"], 1):
        rec = dup["record"]
        print(f"  {i}. [{rec.get('id')}] {rec.get('title')} "
              f"(score {dup['match_score']:.0f}, {dup['confidence']})")
        for reason in dup["match_reasons"]:
            print(f"     - {reason}")


if __name__ == "__main__":
    main()
