#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Proposal Ranking API: JSON endpoints over the ranking pipelines.

Endpoints:
    /api/duplicates/past-performance  - past performance duplicate check (POST)
    /api/duplicates/resources         - library upload duplicate check (POST)
    /api/duplicates/teaming-partners  - teaming partner duplicate check (POST)
    /api/chunks/search                - reusable content chunk search (POST)
    /api/references/adaptive          - adaptive reference selection (POST)
    /api/references/quality           - reference quality summary (GET)
    /api/context/supplementary        - solicitation document priority (POST)
    /api/context/proposal             - reference prompt context (POST)
    /api/health                       - health check, no auth

Every endpoint except /api/health needs an authenticated caller
(see proposal_ranking.api.auth).

Usage:
    python -m proposal_ranking.api.app [--port 5002] [--debug]
"""

import argparse
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

BASE_DIR = Path(__file__).resolve().parent.parent.parent
_env_path = BASE_DIR / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)  # real env vars win

from proposal_ranking import __version__  # noqa: E402
from proposal_ranking.api.auth import get_current_user  # noqa: E402
from proposal_ranking.dedup.partner_dedup import check_partner_duplicates  # noqa: E402
from proposal_ranking.dedup.past_performance_dedup import (  # noqa: E402
    check_past_performance_duplicates,
)
from proposal_ranking.dedup.resource_dedup import check_resource_duplicates  # noqa: E402
from proposal_ranking.errors import AuthError, RankingError  # noqa: E402
from proposal_ranking.knowledge.chunk_ranker import search_similar_chunks  # noqa: E402
from proposal_ranking.knowledge.reference_selector import (  # noqa: E402
    select_adaptive_references, summarize_reference_quality,
)
from proposal_ranking.rfx.context_builder import build_proposal_context  # noqa: E402
from proposal_ranking.rfx.context_prioritizer import (  # noqa: E402
    prioritize_supplementary_context,
)
from proposal_ranking.store import entity_store  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("proposal_ranking.api")

PUBLIC_PATHS = {"/api/health"}

app = Flask(__name__)
app.json.sort_keys = False


def _now():
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _body():
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _flag(body, key, default):
    value = body.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


# =========================================================================
# ERROR HANDLERS
# =========================================================================
@app.errorhandler(RankingError)
def ranking_error(exc):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.path, exc.message)
    return jsonify(exc.payload()), exc.status_code


@app.errorhandler(Exception)
def unexpected_error(exc):
    if isinstance(exc, HTTPException):
        return jsonify({"status": "error", "error": exc.description}), exc.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"status": "error", "error": str(exc)}), 500


# =========================================================================
# AUTH (before_request)
# =========================================================================
@app.before_request
def _before_request():
    if not request.path.startswith("/api/") or request.path in PUBLIC_PATHS:
        return None
    user = get_current_user(request)
    if user is None:
        return jsonify(AuthError().payload()), 401
    g.user = user
    return None


# =========================================================================
# ROUTES
# =========================================================================
@app.route("/api/health")
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "proposal-ranking",
        "version": __version__,
        "db_path": str(entity_store.DB_PATH),
        "timestamp": _now(),
    })


@app.route("/api/duplicates/past-performance", methods=["POST"])
def api_past_performance_duplicates():
    """Check a past performance record before it is created.

    POST body: organization_id, title (required); contract_number,
    customer_agency, pop_start_date, pop_end_date, exclude_id.
    """
    body = _body()
    return jsonify(check_past_performance_duplicates(
        organization_id=body.get("organization_id"),
        title=body.get("title"),
        contract_number=body.get("contract_number"),
        customer_agency=body.get("customer_agency"),
        pop_start_date=body.get("pop_start_date"),
        pop_end_date=body.get("pop_end_date"),
        exclude_id=body.get("exclude_id"),
    ))


@app.route("/api/duplicates/resources", methods=["POST"])
def api_resource_duplicates():
    body = _body()
    return jsonify(check_resource_duplicates(
        organization_id=body.get("organization_id"),
        file_name=body.get("file_name"),
        title=body.get("title"),
        resource_type=body.get("resource_type"),
        file_size=body.get("file_size"),
    ))


@app.route("/api/duplicates/teaming-partners", methods=["POST"])
def api_partner_duplicates():
    body = _body()
    return jsonify(check_partner_duplicates(
        organization_id=body.get("organization_id"),
        company_name=body.get("company_name"),
        uei=body.get("uei"),
        exclude_id=body.get("exclude_id"),
    ))


@app.route("/api/chunks/search", methods=["POST"])
def api_chunk_search():
    """Search reusable content chunks.

    POST body: query_text, current_proposal_id, organization_id (required);
    section_type, max_results, min_relevance_score, only_winning_proposals.
    """
    body = _body()
    return jsonify(search_similar_chunks(
        query_text=body.get("query_text"),
        current_proposal_id=body.get("current_proposal_id"),
        organization_id=body.get("organization_id"),
        section_type=body.get("section_type"),
        max_results=body.get("max_results"),
        min_relevance_score=body.get("min_relevance_score"),
        only_winning_proposals=_flag(body, "only_winning_proposals", False),
    ))


@app.route("/api/references/adaptive", methods=["POST"])
def api_adaptive_references():
    body = _body()
    return jsonify(select_adaptive_references(
        organization_id=body.get("organization_id"),
        current_proposal_id=body.get("current_proposal_id"),
        section_type=body.get("section_type"),
        max_references=body.get("max_references"),
        prioritize_winners=_flag(body, "prioritize_winners", True),
    ))


@app.route("/api/references/quality", methods=["GET"])
def api_reference_quality():
    """Reference quality summary. Query args: organization_id, section_type."""
    return jsonify(summarize_reference_quality(
        organization_id=request.args.get("organization_id"),
        section_type=request.args.get("section_type"),
    ))


@app.route("/api/context/supplementary", methods=["POST"])
def api_supplementary_context():
    body = _body()
    return jsonify(prioritize_supplementary_context(
        proposal_id=body.get("proposal_id"),
        query=body.get("query"),
        max_documents=body.get("max_documents"),
    ))


@app.route("/api/context/proposal", methods=["POST"])
def api_proposal_context():
    """Build the reference prompt context for AI drafting.

    POST body: current_proposal_id, reference_proposal_ids (required);
    target_section_type, max_tokens, llm_provider, prioritize_winning,
    enable_citations.
    """
    body = _body()
    return jsonify(build_proposal_context(
        current_proposal_id=body.get("current_proposal_id"),
        reference_proposal_ids=body.get("reference_proposal_ids"),
        target_section_type=body.get("target_section_type"),
        max_tokens=body.get("max_tokens"),
        llm_provider=body.get("llm_provider") or "gemini",
        prioritize_winning=_flag(body, "prioritize_winning", True),
        enable_citations=_flag(body, "enable_citations", True),
    ))


# =========================================================================
# MAIN
# =========================================================================
def main():
    parser = argparse.ArgumentParser(description="Proposal Ranking API")
    parser.add_argument("--port", type=int,
                        default=int(os.environ.get("PROPOSAL_RANKING_PORT", 5002)))
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    print(f"Proposal Ranking API starting on http://{args.host}:{args.port}")
    print(f"Database: {entity_store.DB_PATH}")
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
