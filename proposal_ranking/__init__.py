# CUI // SP-PROPIN
"""Relevance ranking and deduplication engine for GovProposal.

Areas:
    scoring    - string similarity, signal accumulation, generic ranking, weights
    store      - organization-scoped entity store (sqlite)
    db         - schema initialization
    dedup      - duplicate detection (past performance, resources, teaming partners)
    knowledge  - content chunk ranking and adaptive reference selection
    rfx        - solicitation context prioritization and proposal context assembly
    api        - Flask JSON endpoints and auth provider
    errors     - error taxonomy shared by every area
"""

__version__ = "1.0.0"
