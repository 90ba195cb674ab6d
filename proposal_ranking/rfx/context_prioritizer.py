#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Prioritize solicitation documents as AI drafting context.

Only documents that finished ingestion (rag_ingested) are considered.
Supplementary documents outrank the base solicitation because they change
or clarify it: Q&A responses first, then amendments, SOW/PWS and
clarifications. Later versions and higher amendment numbers get a small
bump, and an optional query adds up to 20 points for documents whose text
mentions its words.

Usage:
    python -m proposal_ranking.rfx.context_prioritizer --proposal PROP-9 \
        [--query "cybersecurity staffing"] [--limit 10] --json
"""

import argparse
import json
import logging
import sys

from proposal_ranking.errors import NotFoundError, RankingError, as_number, require
from proposal_ranking.scoring.pipeline import rank_candidates
from proposal_ranking.scoring.signals import SignalScorer
from proposal_ranking.scoring.text import leading_int, query_tokens, token_coverage
from proposal_ranking.scoring.weights import get_weights
from proposal_ranking.store.entity_store import resolve_store

logger = logging.getLogger("proposal_ranking.rfx.context_prioritizer")


def score_document(document, tokens=None, weights=None):
    """Build the signal set for one solicitation document."""
    w = weights or get_weights().supplementary
    scorer = SignalScorer()

    if document.get("is_supplementary"):
        stype = document.get("supplementary_type")
        base = w.supplementary_types.get(stype, w.supplementary_base)
        scorer.add("document_type", base,
                   f"Supplementary document ({stype or 'unspecified'})")
        if document.get("is_latest_version"):
            scorer.add("latest_version", w.latest_version_bonus, "Latest version")
        number = leading_int(document.get("amendment_number"))
        if number is not None:
            scorer.add("amendment_number",
                       max(0, min(number * w.amendment_multiplier, w.amendment_cap)),
                       f"Amendment {number}")
    else:
        dtype = document.get("document_type")
        base = w.primary_types.get(dtype, w.primary_base)
        scorer.add("document_type", base,
                   f"Solicitation document ({dtype or 'other'})")

    text = document.get("extracted_text")
    if tokens and text:
        coverage = token_coverage(tokens, text)
        scorer.add("query_relevance", coverage * w.relevance_max,
                   f"Matches {round(coverage * 100)}% of query terms")

    return scorer


def _context_summary(documents):
    supplementary = [d for d in documents if d["is_supplementary"]]
    amendments = sum(1 for d in supplementary if d["supplementary_type"] == "amendment")
    qa = sum(1 for d in supplementary if d["supplementary_type"] == "q_a_response")
    return (f"Prioritized {len(documents)} solicitation document(s): "
            f"{len(supplementary)} supplementary, {amendments} amendment(s), "
            f"{qa} Q&A response(s).")


def prioritize_supplementary_context(proposal_id=None, query=None,
                                     max_documents=None, store=None,
                                     db_path=None, weights=None):
    """Rank a proposal's ingested solicitation documents for AI context.

    Args:
        proposal_id: Proposal whose solicitation documents are ranked (required).
        query: Optional drafting query for the relevance boost.
        max_documents: Result cap (default 10).
        store: Optional entity store.
        db_path: Optional database path override.
        weights: Optional SupplementaryWeights.

    Returns:
        dict with success, documents, context_summary and metadata. An
        unknown proposal yields an empty document list, not an error.
    """
    require({"proposal_id": proposal_id}, "proposal_id")
    w = weights or get_weights().supplementary
    max_documents = as_number(max_documents, "max_documents", w.default_max_documents)
    tokens = query_tokens(query, w.min_token_length) if query else []

    store = resolve_store(store, db_path)
    try:
        proposal = store.get("Proposal", proposal_id)
    except NotFoundError:
        logger.info("Supplementary context requested for unknown proposal %s",
                    proposal_id)
        return {
            "success": True,
            "documents": [],
            "context_summary": f"Proposal {proposal_id} not found; "
                               "no solicitation context available.",
            "metadata": {"proposal_found": False, "total_ingested": 0,
                         "documents_returned": 0, "query_tokens": tokens},
        }

    documents = store.filter("SolicitationDocument", {
        "organization_id": proposal.get("organization_id"),
        "proposal_id": proposal_id,
        "rag_ingested": True,
    })

    ranked = rank_candidates(documents, lambda d: score_document(d, tokens, w),
                             tiers=w.tiers, max_results=max_documents)

    results = []
    for r in ranked:
        doc = r.candidate
        results.append({
            "id": doc.get("id"),
            "file_name": doc.get("file_name"),
            "document_type": doc.get("document_type"),
            "is_supplementary": bool(doc.get("is_supplementary")),
            "supplementary_type": doc.get("supplementary_type"),
            "amendment_number": doc.get("amendment_number"),
            "is_latest_version": bool(doc.get("is_latest_version")),
            "priority_score": r.total_score,
            "priority_reasons": r.reasons,
            "content_summary": doc.get("content_summary"),
            "full_content": doc.get("extracted_text"),
        })

    logger.info("Supplementary context for proposal %s: %d ingested, %d returned",
                proposal_id, len(documents), len(results))

    return {
        "success": True,
        "documents": results,
        "context_summary": _context_summary(results),
        "metadata": {
            "proposal_found": True,
            "total_ingested": len(documents),
            "documents_returned": len(results),
            "max_documents": max_documents,
            "query_tokens": tokens,
        },
    }


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Prioritize solicitation documents for AI context")
    parser.add_argument("--proposal", required=True, help="Proposal ID")
    parser.add_argument("--query", help="Drafting query")
    parser.add_argument("--limit", type=int, help="Max documents (default: 10)")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--db-path", help="Override database path")
    args = parser.parse_args()

    try:
        result = prioritize_supplementary_context(
            proposal_id=args.proposal, query=args.query,
            max_documents=args.limit, db_path=args.db_path,
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

    print(result["context_summary"])
    for doc in result["documents"]:
        print(f"  ({doc['priority_score']:.0f}) {doc['file_name']}")


if __name__ == "__main__":
    main()
