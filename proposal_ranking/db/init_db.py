#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN (Proprietary Business Information)
# Distribution: D
# POC: GovProposal System Administrator
"""Initialize the entity database read by the ranking engine.

Creates tables for:
  - Proposals & Sections (reference material, chunk parents)
  - Knowledge (past performance records, library resources, content chunks)
  - Learning (content quality feedback)
  - Solicitation documents (RFP, amendments, Q&A)
  - Capture (teaming partners)

Every entity row is scoped by organization_id. JSON list columns hold
TEXT-encoded arrays; flag columns hold 0/1 integers.

Usage:
    python -m proposal_ranking.db.init_db [--json] [--db-path PATH]
"""

import json
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DB_PATH = Path(os.environ.get(
    "PROPOSAL_RANKING_DB_PATH", str(BASE_DIR / "data" / "proposal_ranking.db")
))


SCHEMA_SQL = """
-- ============================================================
-- PROPOSALS
-- ============================================================

CREATE TABLE IF NOT EXISTS proposals (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    proposal_name TEXT NOT NULL,
    project_title TEXT,
    agency_name TEXT,
    solicitation_number TEXT,
    project_type TEXT,
    contract_value REAL,
    status TEXT NOT NULL DEFAULT 'evaluating'
        CHECK(status IN ('evaluating', 'watch_list', 'draft', 'in_progress',
              'submitted', 'won', 'lost', 'archived')),
    win_themes TEXT,
    reference_proposal_ids TEXT,
    created_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_prop_org ON proposals(organization_id);
CREATE INDEX IF NOT EXISTS idx_prop_status ON proposals(status);

CREATE TABLE IF NOT EXISTS proposal_sections (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    proposal_id TEXT NOT NULL REFERENCES proposals(id),
    section_name TEXT NOT NULL,
    section_type TEXT,
    content TEXT,
    word_count INTEGER DEFAULT 0,
    created_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_section_prop ON proposal_sections(proposal_id);
CREATE INDEX IF NOT EXISTS idx_section_type ON proposal_sections(section_type);

-- ============================================================
-- KNOWLEDGE
-- ============================================================

CREATE TABLE IF NOT EXISTS past_performances (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    title TEXT NOT NULL,
    contract_number TEXT,
    customer_agency TEXT,
    contract_value REAL,
    pop_start_date TEXT,
    pop_end_date TEXT,
    description TEXT,
    created_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_pp_org ON past_performances(organization_id);

CREATE TABLE IF NOT EXISTS resources (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    title TEXT NOT NULL,
    file_name TEXT,
    resource_type TEXT,
    file_size INTEGER,
    usage_count INTEGER NOT NULL DEFAULT 0,
    tags TEXT,
    created_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_res_org ON resources(organization_id);

-- Paragraph-level excerpts of written proposal sections
CREATE TABLE IF NOT EXISTS content_chunks (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    proposal_id TEXT NOT NULL,
    section_id TEXT,
    section_type TEXT,
    chunk_index INTEGER NOT NULL DEFAULT 0,
    chunk_text TEXT NOT NULL,
    keywords TEXT,
    word_count INTEGER DEFAULT 0,
    created_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_chunk_org ON content_chunks(organization_id);
CREATE INDEX IF NOT EXISTS idx_chunk_prop ON content_chunks(proposal_id);
CREATE INDEX IF NOT EXISTS idx_chunk_section ON content_chunks(section_type);

-- ============================================================
-- LEARNING
-- ============================================================

CREATE TABLE IF NOT EXISTS quality_feedback (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    proposal_id TEXT,
    section_type TEXT,
    quality_rating REAL NOT NULL
        CHECK(quality_rating >= 0 AND quality_rating <= 5),
    reference_proposal_ids TEXT,
    used_rag INTEGER NOT NULL DEFAULT 0,
    estimated_tokens_used INTEGER,
    created_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_feedback_org ON quality_feedback(organization_id);

-- ============================================================
-- SOLICITATION DOCUMENTS
-- ============================================================

CREATE TABLE IF NOT EXISTS solicitation_documents (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    proposal_id TEXT NOT NULL,
    file_name TEXT NOT NULL,
    document_type TEXT,
    is_supplementary INTEGER NOT NULL DEFAULT 0,
    supplementary_type TEXT,
    amendment_number TEXT,
    is_latest_version INTEGER NOT NULL DEFAULT 1,
    rag_ingested INTEGER NOT NULL DEFAULT 0,
    content_summary TEXT,
    extracted_text TEXT,
    created_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_soldoc_prop ON solicitation_documents(proposal_id);

-- ============================================================
-- CAPTURE
-- ============================================================

CREATE TABLE IF NOT EXISTS teaming_partners (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    partner_name TEXT NOT NULL,
    uei TEXT,
    cage_code TEXT,
    created_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_team_org ON teaming_partners(organization_id);
CREATE INDEX IF NOT EXISTS idx_team_uei ON teaming_partners(uei);
"""


def init_db(db_path=None):
    """Initialize the ranking engine database."""
    path = db_path or str(DB_PATH)
    db_dir = Path(path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    conn.executescript(SCHEMA_SQL)
    conn.commit()

    table_count = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type='table'"
    ).fetchone()[0]
    index_count = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type='index' "
        "AND name NOT LIKE 'sqlite_%'"
    ).fetchone()[0]

    conn.close()

    return {
        "status": "initialized",
        "db_path": str(path),
        "tables": table_count,
        "indexes": index_count,
        "initialized_at": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize ranking engine database")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--db-path", help="Override database path")
    args = parser.parse_args()

    result = init_db(db_path=args.db_path)

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print("Ranking engine database initialized:")
        print(f"  Path:    {result['db_path']}")
        print(f"  Tables:  {result['tables']}")
        print(f"  Indexes: {result['indexes']}")
        print(f"  Time:    {result['initialized_at']}")
