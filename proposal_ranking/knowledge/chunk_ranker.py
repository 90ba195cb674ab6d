#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Semantic chunk search for content reuse.

Finds paragraph-level excerpts of previously written proposals that are
relevant to a drafting query. Each chunk is scored (0-100):

    text keyword match    up to 40  fraction of query words found in the chunk
    chunk keyword overlap up to 20  fraction of query words matching chunk keywords
    same agency           +15       parent proposal agency == current agency
    same project type     +10
    winning proposal      +15       parent proposal status == won

Query words are lower-cased whitespace tokens longer than 3 characters.
Parent proposals are resolved best-effort: a failed lookup drops the three
proposal-level signals for that chunk and is reported on the result.

Usage:
    python -m proposal_ranking.knowledge.chunk_ranker --org ORG-1 \
        --proposal PROP-9 --query "zero trust network segmentation" \
        [--section-type technical_approach] [--winners-only] --json
"""

import argparse
import json
import logging
import sys

from proposal_ranking.errors import NotFoundError, RankingError, as_number, require
from proposal_ranking.scoring.pipeline import Enrichment, rank_candidates
from proposal_ranking.scoring.signals import SignalScorer
from proposal_ranking.scoring.text import normalize, query_tokens, token_coverage
from proposal_ranking.scoring.weights import get_weights
from proposal_ranking.store.entity_store import resolve_store

logger = logging.getLogger("proposal_ranking.knowledge.chunk_ranker")


def _keyword_overlap(tokens, keywords):
    """Fraction of tokens matching any keyword by substring either way."""
    if not tokens:
        return 0.0
    keywords = [k.lower() for k in keywords if isinstance(k, str) and k.strip()]
    hits = sum(1 for t in tokens if any(k in t or t in k for k in keywords))
    return hits / len(tokens)


def score_chunk(chunk, tokens, current_proposal, parent, weights=None):
    """Build the signal set for one chunk.

    Args:
        chunk: Content chunk record.
        tokens: Query tokens.
        current_proposal: The proposal being drafted.
        parent: Resolved parent proposal, or None.
        weights: Optional ChunkWeights.
    """
    w = weights or get_weights().chunks
    scorer = SignalScorer()

    coverage = token_coverage(tokens, chunk.get("chunk_text"))
    if coverage > 0:
        hits = round(coverage * len(tokens))
        scorer.add("text_match", min(coverage * w.text_match, w.text_match),
                   f"Matches {hits} of {len(tokens)} query keywords")

    keywords = chunk.get("keywords") or []
    if keywords:
        overlap = _keyword_overlap(tokens, keywords)
        if overlap > 0:
            scorer.add("keyword_match", min(overlap * w.keyword_match, w.keyword_match),
                       "Shares indexed keywords with the query")

    if parent is not None:
        agency = normalize(parent.get("agency_name"))
        if agency and agency == normalize(current_proposal.get("agency_name")):
            scorer.add("same_agency", w.same_agency,
                       f"Same agency: {parent.get('agency_name')}")
        ptype = normalize(parent.get("project_type"))
        if ptype and ptype == normalize(current_proposal.get("project_type")):
            scorer.add("same_project_type", w.same_project_type,
                       f"Same project type: {parent.get('project_type')}")
        if parent.get("status") == "won":
            scorer.add("winning_proposal", w.winning_proposal,
                       "From a winning proposal")

    return scorer


def _parent_summary(parent):
    if parent is None:
        return None
    return {
        "id": parent.get("id"),
        "proposal_name": parent.get("proposal_name"),
        "agency_name": parent.get("agency_name"),
        "project_type": parent.get("project_type"),
        "status": parent.get("status"),
    }


def search_similar_chunks(query_text=None, current_proposal_id=None,
                          organization_id=None, section_type=None,
                          max_results=None, min_relevance_score=None,
                          only_winning_proposals=False, store=None,
                          db_path=None, weights=None):
    """Rank reusable content chunks from prior proposals against a query.

    Args:
        query_text: Free-text description of what is being written (required).
        current_proposal_id: Proposal being drafted; its chunks are excluded
            (required, must exist).
        organization_id: Owning organization (required).
        section_type: Optional section type filter.
        max_results: Result cap (default 20).
        min_relevance_score: Inclusion threshold (default 30).
        only_winning_proposals: Restrict to chunks of won proposals.
        store: Optional entity store.
        db_path: Optional database path override.
        weights: Optional ChunkWeights.

    Returns:
        dict with status, results and search_metadata.

    Raises:
        ValidationError: A required field is missing.
        NotFoundError: The current proposal does not exist or belongs to
            another organization.
    """
    require({"query_text": query_text, "current_proposal_id": current_proposal_id,
             "organization_id": organization_id},
            "query_text", "current_proposal_id", "organization_id")
    w = weights or get_weights().chunks
    max_results = as_number(max_results, "max_results", w.default_max_results)
    min_relevance_score = as_number(min_relevance_score, "min_relevance_score",
                                    w.default_min_relevance, cast=float)

    store = resolve_store(store, db_path)
    current = store.get("Proposal", current_proposal_id)
    if current.get("organization_id") != organization_id:
        raise NotFoundError(f"Proposal not found: {current_proposal_id}")

    proposal_filter = {"$ne": current_proposal_id}
    if only_winning_proposals:
        won = store.filter("Proposal", {"organization_id": organization_id,
                                        "status": "won"})
        proposal_filter["$in"] = [p["id"] for p in won if p["id"] != current_proposal_id]
    query = {"organization_id": organization_id, "proposal_id": proposal_filter}
    if section_type:
        query["section_type"] = section_type

    chunks = store.filter("ContentChunk", query, sort="-created_date",
                          limit=w.candidate_limit)

    parents = {}
    for chunk in chunks:
        pid = chunk.get("proposal_id")
        if pid not in parents:
            parents[pid] = Enrichment.attempt(store.get, "Proposal", pid)
            if not parents[pid].ok:
                logger.warning("Parent proposal lookup failed for %s: %s",
                               pid, parents[pid].error)

    tokens = query_tokens(query_text, w.min_token_length)
    ranked = rank_candidates(
        chunks,
        lambda chunk: score_chunk(chunk, tokens, current,
                                  parents[chunk.get("proposal_id")].value, w),
        tiers=w.tiers,
        min_score=min_relevance_score,
        max_score=w.max_score,
        max_results=max_results,
        enrichment_error=lambda chunk: parents[chunk.get("proposal_id")].error,
    )

    results = []
    for r in ranked:
        item = dict(r.candidate)
        item["relevance_score"] = r.total_score
        item["relevance_reasons"] = r.reasons
        item["confidence"] = r.confidence
        item["parent_proposal"] = _parent_summary(
            parents[r.candidate.get("proposal_id")].value)
        item["parent_lookup_error"] = r.enrichment_error
        results.append(item)

    logger.info("Chunk search for proposal %s: %d candidates, %d matches, %d returned",
                current_proposal_id, len(chunks), ranked.total_matches, len(results))

    return {
        "status": "success",
        "results": results,
        "search_metadata": {
            "query_tokens": tokens,
            "candidates_evaluated": len(chunks),
            "total_matches": ranked.total_matches,
            "results_returned": len(results),
            "min_relevance_score": min_relevance_score,
            "max_results": max_results,
            "section_type": section_type,
            "only_winning_proposals": bool(only_winning_proposals),
            "failed_parent_lookups": sum(1 for e in parents.values() if not e.ok),
        },
    }


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Search reusable content chunks")
    parser.add_argument("--org", required=True, help="Organization ID")
    parser.add_argument("--proposal", required=True, help="Current proposal ID")
    parser.add_argument("--query", required=True, help="What is being written")
    parser.add_argument("--section-type", help="Section type filter")
    parser.add_argument("--limit", type=int, help="Max results (default: 20)")
    parser.add_argument("--min-score", type=float, help="Minimum relevance (default: 30)")
    parser.add_argument("--winners-only", action="store_true",
                        help="Only chunks from won proposals")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--db-path", help="Override database path")
    args = parser.parse_args()

    try:
        result = search_similar_chunks(
            query_text=args.query,
            current_proposal_id=args.proposal,
            organization_id=args.org,
            section_type=args.section_type,
            max_results=args.limit,
            min_relevance_score=args.min_score,
            only_winning_proposals=args.winners_only,
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

    meta = result["search_metadata"]
    print(f"{meta['results_returned']} of {meta['candidates_evaluated']} chunks:")
    for i, item in enumerate(result["results"], 1):
        parent = item["parent_proposal"] or {}
        excerpt = (item.get("chunk_text") or "")[:80].replace("\n", " ")
        print(f"  {i}. ({item['relevance_score']:.1f}) "
              f"{parent.get('proposal_name', '?')}: {excerpt}")


if __name__ == "__main__":
    main()
