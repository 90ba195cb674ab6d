#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Organization-scoped entity store over the GovProposal sqlite database.

The ranking pipelines only ever read through two calls:

    store.filter("Proposal", {"organization_id": org, "status": {"$in": [...]}},
                 sort="-created_date", limit=500)
    store.get("Proposal", proposal_id)

Query values are matched by equality, or by an operator dict holding any
of ``$in``, ``$nin`` and ``$ne``. JSON list columns come back as lists and
flag columns as bools. Rows with equal sort keys keep insertion order.
"""

import json
import logging
import os
import sqlite3
from pathlib import Path

from proposal_ranking.errors import InternalError, NotFoundError, ValidationError

logger = logging.getLogger("proposal_ranking.store.entity_store")

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DB_PATH = Path(os.environ.get(
    "PROPOSAL_RANKING_DB_PATH", str(BASE_DIR / "data" / "proposal_ranking.db")
))

# entity name -> (table, JSON list columns, boolean columns)
ENTITIES = {
    "Proposal": ("proposals", ("win_themes", "reference_proposal_ids"), ()),
    "ProposalSection": ("proposal_sections", (), ()),
    "PastPerformance": ("past_performances", (), ()),
    "Resource": ("resources", ("tags",), ()),
    "ContentChunk": ("content_chunks", ("keywords",), ()),
    "QualityFeedback": ("quality_feedback", ("reference_proposal_ids",), ("used_rag",)),
    "SolicitationDocument": (
        "solicitation_documents", (),
        ("is_supplementary", "is_latest_version", "rag_ingested"),
    ),
    "TeamingPartner": ("teaming_partners", (), ()),
}

_OPERATORS = ("$in", "$nin", "$ne")


def _decode_json_list(value):
    """Decode a TEXT-encoded JSON array; plain strings become one-item lists."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return [v.strip() for v in str(value).split(",") if v.strip()]
    if isinstance(parsed, list):
        return parsed
    return [parsed]


def _to_sql_value(value):
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return value


class EntityStore:
    """Read access to the entity tables, one short-lived connection per call."""

    def __init__(self, db_path=None):
        self.db_path = str(db_path or DB_PATH)
        self._columns = {}

    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _entity(self, entity):
        try:
            return ENTITIES[entity]
        except KeyError:
            raise ValidationError(f"Unknown entity '{entity}'") from None

    def _table_columns(self, conn, table):
        if table not in self._columns:
            rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
            self._columns[table] = {r["name"] for r in rows}
        return self._columns[table]

    def _row_to_record(self, entity, row):
        _, json_cols, bool_cols = self._entity(entity)
        record = dict(row)
        for col in json_cols:
            if col in record:
                record[col] = _decode_json_list(record[col])
        for col in bool_cols:
            if col in record and record[col] is not None:
                record[col] = bool(record[col])
        return record

    def _where(self, query, columns):
        clauses, params = [], []
        for key, condition in (query or {}).items():
            if key not in columns:
                raise ValidationError(f"Unknown filter field '{key}'")
            if isinstance(condition, dict):
                for op, value in condition.items():
                    if op not in _OPERATORS:
                        raise ValidationError(f"Unsupported filter operator '{op}'")
                    if op == "$ne":
                        if value is None:
                            clauses.append(f"{key} IS NOT NULL")
                        else:
                            clauses.append(f"({key} IS NULL OR {key} != ?)")
                            params.append(_to_sql_value(value))
                        continue
                    values = [_to_sql_value(v) for v in (value or [])]
                    if not values:
                        # Empty $in matches nothing, empty $nin everything
                        clauses.append("0" if op == "$in" else "1")
                        continue
                    marks = ", ".join("?" * len(values))
                    if op == "$in":
                        clauses.append(f"{key} IN ({marks})")
                    else:
                        clauses.append(f"({key} IS NULL OR {key} NOT IN ({marks}))")
                    params.extend(values)
            elif condition is None:
                clauses.append(f"{key} IS NULL")
            else:
                clauses.append(f"{key} = ?")
                params.append(_to_sql_value(condition))
        return (" WHERE " + " AND ".join(clauses)) if clauses else "", params

    def filter(self, entity, query=None, sort=None, limit=None):
        """Return records of ``entity`` matching ``query``.

        Args:
            entity: Entity name (see ENTITIES).
            query: Field -> value or operator dict.
            sort: Field name, prefixed with '-' for descending.
            limit: Maximum number of records.

        Returns:
            list of record dicts.

        Raises:
            ValidationError: Unknown entity, field or operator.
            InternalError: The database read failed.
        """
        table, _, _ = self._entity(entity)
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise InternalError(f"Entity store unavailable: {exc}") from exc
        try:
            columns = self._table_columns(conn, table)
            where, params = self._where(query, columns)
            order = " ORDER BY rowid ASC"
            if sort:
                field = sort.lstrip("-")
                if field not in columns:
                    raise ValidationError(f"Unknown sort field '{field}'")
                direction = "DESC" if sort.startswith("-") else "ASC"
                order = f" ORDER BY {field} {direction}, rowid ASC"
            sql = f"SELECT * FROM {table}{where}{order}"
            if limit is not None:
                sql += " LIMIT ?"
                params.append(int(limit))
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_record(entity, r) for r in rows]
        except sqlite3.Error as exc:
            logger.error("Entity store filter on %s failed: %s", entity, exc)
            raise InternalError(f"Failed to read {entity}: {exc}") from exc
        finally:
            conn.close()

    def get(self, entity, record_id):
        """Return one record by id.

        Raises:
            NotFoundError: No record with that id.
            InternalError: The database read failed.
        """
        table, _, _ = self._entity(entity)
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise InternalError(f"Entity store unavailable: {exc}") from exc
        try:
            row = conn.execute(
                f"SELECT * FROM {table} WHERE id = ?", (record_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Entity store get on %s failed: %s", entity, exc)
            raise InternalError(f"Failed to read {entity}: {exc}") from exc
        finally:
            conn.close()
        if row is None:
            raise NotFoundError(f"{entity} not found: {record_id}")
        return self._row_to_record(entity, row)


def resolve_store(store=None, db_path=None):
    """Use the injected store, or open one on ``db_path``/DB_PATH."""
    if store is not None:
        return store
    return EntityStore(db_path or DB_PATH)
