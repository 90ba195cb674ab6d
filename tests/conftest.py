#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Shared test fixtures for the Proposal Ranking test suite."""

import json
import os
import sqlite3
import sys
from pathlib import Path

import pytest

# Add project root to path
BASE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BASE_DIR))

ORG = "ORG-test"
OTHER_ORG = "ORG-other"


def _patch_db_path(db_path):
    """Patch DB_PATH in modules that cache it at import time."""
    p = Path(db_path)
    modules_to_patch = [
        "proposal_ranking.store.entity_store",
        "proposal_ranking.db.init_db",
    ]
    for mod_name in modules_to_patch:
        if mod_name in sys.modules:
            mod = sys.modules[mod_name]
            if hasattr(mod, "DB_PATH"):
                mod.DB_PATH = p


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary ranking database with full schema."""
    db_path = tmp_path / "test_proposal_ranking.db"

    from proposal_ranking.db.init_db import init_db
    import proposal_ranking.store.entity_store  # noqa: F401  (so it can be patched)
    init_db(str(db_path))

    previous = {
        name: sys.modules[name].DB_PATH
        for name in ("proposal_ranking.store.entity_store",
                     "proposal_ranking.db.init_db")
        if name in sys.modules
    }
    os.environ["PROPOSAL_RANKING_DB_PATH"] = str(db_path)
    _patch_db_path(db_path)
    yield db_path
    for name, value in previous.items():
        sys.modules[name].DB_PATH = value
    if "PROPOSAL_RANKING_DB_PATH" in os.environ:
        del os.environ["PROPOSAL_RANKING_DB_PATH"]


@pytest.fixture
def db_conn(tmp_db):
    """Get a connection to the test database."""
    conn = sqlite3.connect(str(tmp_db))
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


@pytest.fixture
def insert(db_conn):
    """Insert one row: ``insert("proposals", id="P1", ...)``.

    Lists are stored as JSON text, bools as 0/1.
    """
    def _insert(table, **values):
        values.setdefault("organization_id", ORG)
        row = {}
        for key, value in values.items():
            if isinstance(value, (list, dict)):
                value = json.dumps(value)
            elif isinstance(value, bool):
                value = int(value)
            row[key] = value
        cols = ", ".join(row)
        marks = ", ".join("?" * len(row))
        db_conn.execute(f"INSERT INTO {table} ({cols}) VALUES ({marks})",
                        list(row.values()))
        db_conn.commit()
        return values.get("id")
    return _insert


@pytest.fixture
def store(tmp_db):
    """Entity store on the temporary database."""
    from proposal_ranking.store.entity_store import EntityStore
    return EntityStore(tmp_db)


@pytest.fixture
def sample_proposals(insert):
    """Current proposal plus won/submitted/lost/draft history."""
    insert("proposals", id="PROP-current", proposal_name="Army Zero Trust Rollout",
           agency_name="Department of the Army", project_type="RFP",
           contract_value=5000000, status="in_progress",
           created_date="2026-10-01T00:00:00Z")
    insert("proposals", id="PROP-won", proposal_name="Army Network Modernization",
           agency_name="Department of the Army", project_type="RFP",
           contract_value=4000000, status="won",
           win_themes=["Zero downtime transition", {"theme_title": "Cleared workforce"}],
           created_date="2026-09-01T00:00:00Z")
    insert("proposals", id="PROP-submitted", proposal_name="Navy Help Desk",
           agency_name="Department of the Navy", project_type="RFQ",
           contract_value=1000000, status="submitted",
           created_date="2026-08-01T00:00:00Z")
    insert("proposals", id="PROP-lost", proposal_name="Air Force Cloud Migration",
           agency_name="Department of the Air Force", project_type="RFP",
           contract_value=9000000, status="lost",
           created_date="2024-01-01T00:00:00Z")
    insert("proposals", id="PROP-draft", proposal_name="Draft Capture",
           agency_name="Department of the Army", project_type="RFP",
           status="draft", created_date="2026-09-15T00:00:00Z")
    return ["PROP-current", "PROP-won", "PROP-submitted", "PROP-lost", "PROP-draft"]


@pytest.fixture
def sample_chunks(insert, sample_proposals):
    """Content chunks across the sample proposals."""
    insert("content_chunks", id="CHK-won-1", proposal_id="PROP-won",
           section_type="technical_approach", chunk_index=0,
           chunk_text="Our zero trust architecture enforces network segmentation "
                      "and continuous identity verification.",
           keywords=["zero", "trust", "segmentation", "identity"],
           created_date="2026-09-02T00:00:00Z")
    insert("content_chunks", id="CHK-submitted-1", proposal_id="PROP-submitted",
           section_type="technical_approach", chunk_index=0,
           chunk_text="Help desk tickets are triaged within fifteen minutes.",
           keywords=["help desk"], created_date="2026-08-02T00:00:00Z")
    insert("content_chunks", id="CHK-lost-1", proposal_id="PROP-lost",
           section_type="management", chunk_index=0,
           chunk_text="Network segmentation is delivered through zero trust "
                      "gateways managed by a cleared team.",
           keywords=["network"], created_date="2024-01-02T00:00:00Z")
    insert("content_chunks", id="CHK-current-1", proposal_id="PROP-current",
           section_type="technical_approach", chunk_index=0,
           chunk_text="Zero trust network segmentation draft paragraph.",
           keywords=["zero", "trust"], created_date="2026-10-02T00:00:00Z")
    return ["CHK-won-1", "CHK-submitted-1", "CHK-lost-1", "CHK-current-1"]


@pytest.fixture
def sample_feedback(insert, sample_proposals):
    """Quality feedback crediting the sample reference proposals."""
    insert("quality_feedback", id="QF-1", proposal_id="PROP-current",
           section_type="technical_approach", quality_rating=5,
           reference_proposal_ids=["PROP-won"], used_rag=True)
    insert("quality_feedback", id="QF-2", proposal_id="PROP-current",
           section_type="management", quality_rating=4,
           reference_proposal_ids=["PROP-won", "PROP-lost"], used_rag=True)
    insert("quality_feedback", id="QF-3", proposal_id="PROP-draft",
           section_type="technical_approach", quality_rating=4.5,
           reference_proposal_ids=["PROP-won"], used_rag=True)
    insert("quality_feedback", id="QF-4", proposal_id="PROP-draft",
           section_type="technical_approach", quality_rating=2,
           reference_proposal_ids=[], used_rag=False)
    return ["QF-1", "QF-2", "QF-3", "QF-4"]


@pytest.fixture
def api_client(tmp_db, monkeypatch):
    """Flask test client with no API key configured."""
    monkeypatch.delenv("PROPOSAL_RANKING_API_KEY", raising=False)
    from proposal_ranking.api.app import app
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"X-User-Email": "writer@example.com"}
