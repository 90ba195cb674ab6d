#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Duplicate detection for content library resources.

Checked before an upload is stored. File names are compared after
lower-casing and stripping underscores, spaces and hyphens, so
"Past_Performance-Vol 1.pdf" and "pastperformancevol1.pdf" match.

    file name   +50 exact, +30 when one contains the other
    title       +30 exact, +20 when Levenshtein similarity > 0.7
    type        +10 same resource_type
    size        +10 within 1% of each other

Resources scoring 40 or more are reported (top 5, score capped at 100).

Usage:
    python -m proposal_ranking.dedup.resource_dedup --org ORG-1 \
        --file-name "cap_statement.pdf" --title "Capability Statement" --json
"""

import argparse
import json
import logging
import sys

from proposal_ranking.errors import RankingError, require
from proposal_ranking.scoring.pipeline import rank_candidates
from proposal_ranking.scoring.signals import SignalScorer
from proposal_ranking.scoring.similarity import similarity
from proposal_ranking.scoring.text import normalize
from proposal_ranking.scoring.weights import get_weights
from proposal_ranking.store.entity_store import resolve_store

logger = logging.getLogger("proposal_ranking.dedup.resource")


def normalize_file_name(name):
    """Lower-case and drop '_', ' ' and '-'."""
    if name is None:
        return ""
    return str(name).lower().replace("_", "").replace(" ", "").replace("-", "")


def _size_matches(size, other, tolerance):
    try:
        size = float(size)
        other = float(other)
    except (TypeError, ValueError):
        return False
    if size <= 0 or other <= 0:
        return False
    return abs(size - other) / max(size, other) <= tolerance


def score_resource(params, resource, weights=None):
    """Build the signal set for one existing resource."""
    w = weights or get_weights().resources
    scorer = SignalScorer()

    name = normalize_file_name(params.get("file_name"))
    cand_name = normalize_file_name(resource.get("file_name"))
    if name and cand_name:
        if name == cand_name:
            scorer.add("file_name", w.file_name_exact, "Identical file name")
        elif name in cand_name or cand_name in name:
            scorer.add("file_name", w.file_name_partial, "Similar file name")

    title = normalize(params.get("title"))
    cand_title = normalize(resource.get("title"))
    if title and cand_title:
        if title == cand_title:
            scorer.add("title", w.title_exact, "Identical title")
        else:
            ratio = similarity(title, cand_title)
            if ratio > w.title_similarity_threshold:
                scorer.add("title", w.title_similar,
                           f"Similar title ({round(ratio * 100)}% similar)")

    rtype = params.get("resource_type")
    if rtype and rtype == resource.get("resource_type"):
        scorer.add("resource_type", w.resource_type_match, "Same resource type")

    if params.get("file_size") is not None and _size_matches(
            params["file_size"], resource.get("file_size"), w.file_size_tolerance):
        scorer.add("file_size", w.file_size_match, "Same file size")

    return scorer


def check_resource_duplicates(organization_id=None, file_name=None, title=None,
                              resource_type=None, file_size=None,
                              store=None, db_path=None, weights=None):
    """Find library resources that may duplicate an upload.

    Args:
        organization_id: Owning organization (required).
        file_name: Name of the uploaded file (required).
        title: Resource title (required).
        resource_type: Optional resource type.
        file_size: Optional size in bytes.
        store: Optional entity store.
        db_path: Optional database path override.
        weights: Optional ResourceWeights.

    Returns:
        dict with has_duplicates, duplicates, checked_against.
    """
    params = {
        "organization_id": organization_id, "file_name": file_name,
        "title": title, "resource_type": resource_type, "file_size": file_size,
    }
    require(params, "organization_id", "file_name", "title")
    w = weights or get_weights().resources

    store = resolve_store(store, db_path)
    resources = store.filter("Resource", {"organization_id": organization_id})

    ranked = rank_candidates(
        resources,
        lambda resource: score_resource(params, resource, w),
        tiers=w.tiers,
        min_score=w.min_score,
        max_score=w.max_score,
        max_results=w.max_results,
    )

    duplicates = []
    for r in ranked:
        res = r.candidate
        duplicates.append({
            "id": res.get("id"),
            "title": res.get("title"),
            "file_name": res.get("file_name"),
            "resource_type": res.get("resource_type"),
            "similarity_score": r.total_score,
            "match_reason": ", ".join(r.reasons),
            "created_date": res.get("created_date"),
            "usage_count": res.get("usage_count") or 0,
        })

    logger.info("Resource duplicate check for org %s: %d checked, %d possible "
                "duplicates", organization_id, len(resources), len(duplicates))

    return {
        "has_duplicates": bool(duplicates),
        "duplicates": duplicates,
        "checked_against": len(resources),
    }


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Check a library upload for duplicates")
    parser.add_argument("--org", required=True, help="Organization ID")
    parser.add_argument("--file-name", required=True, help="Uploaded file name")
    parser.add_argument("--title", required=True, help="Resource title")
    parser.add_argument("--type", dest="resource_type", help="Resource type")
    parser.add_argument("--size", type=int, help="File size in bytes")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--db-path", help="Override database path")
    args = parser.parse_args()

    try:
        result = check_resource_duplicates(
            organization_id=args.org,
            file_name=args.file_name,
            title=args.title,
            resource_type=args.resource_type,
            file_size=args.size,
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

    print(f"Checked against {result['checked_against']} resources")
    for dup in result["duplicates"]:
        print(f"  [{dup['id']}] {dup['title']} ({dup['file_name']}) "
              f"score {dup['similarity_score']:.0f}: {dup['match_reason']}")


if __name__ == "__main__":
    main()
