#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Proposal Ranking startup script.

Checks the two things that break the API at first request:
  1. Missing database file (every pipeline reads from it)
  2. Invalid args/ranking_weights.yaml (unknown keys, non-numeric values)

Usage:
  python start.py                   # validate + start the API
  python start.py --port 5003       # override port
  python start.py --validate-only   # check without starting the API
"""

import argparse
import os
import sys
from pathlib import Path

import yaml

BASE_DIR = Path(__file__).resolve().parent

# Windows cp1252 console can't render Unicode; force UTF-8 output
if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")

GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
RESET = "\033[0m"
BOLD = "\033[1m"


def _ok(msg):   print(f"{GREEN}  ✓{RESET} {msg}")
def _warn(msg): print(f"{YELLOW}  ⚠{RESET} {msg}")
def _err(msg):  print(f"{RED}  ✗{RESET} {msg}")


def ensure_database():
    """Create the database if it does not exist yet."""
    from proposal_ranking.db.init_db import init_db
    from proposal_ranking.store.entity_store import DB_PATH

    if Path(DB_PATH).exists():
        _ok(f"Database found at {DB_PATH}")
        return True
    result = init_db(str(DB_PATH))
    _ok(f"Database initialized at {result['db_path']} ({result['tables']} tables)")
    return True


def validate_weights():
    """Parse the weight configuration; report problems instead of raising."""
    from proposal_ranking.scoring.weights import WEIGHTS_PATH, reload_weights

    if not Path(WEIGHTS_PATH).exists():
        _warn(f"No weights file at {WEIGHTS_PATH}; built-in defaults apply")
        return True
    try:
        reload_weights()
    except (ValueError, TypeError, yaml.YAMLError) as exc:
        _err(f"Invalid weights file {WEIGHTS_PATH}: {exc}")
        return False
    _ok(f"Weights loaded from {WEIGHTS_PATH}")
    return True


def run(args):
    print(f"\n{BOLD}Proposal Ranking startup{RESET}  (port {args.port})\n")

    print(f"{BOLD}[1/3] Database{RESET}")
    ensure_database()

    print(f"\n{BOLD}[2/3] Weight configuration{RESET}")
    if not validate_weights():
        return 1

    if args.validate_only:
        print(f"\n{BOLD}Validation complete.{RESET} (--validate-only, not starting the API)\n")
        return 0

    print(f"\n{BOLD}[3/3] Starting API{RESET}")
    from proposal_ranking.api.app import app
    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Proposal Ranking startup")
    parser.add_argument("--port", type=int,
                        default=int(os.environ.get("PROPOSAL_RANKING_PORT", 5002)))
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--validate-only", action="store_true",
                        help="Check database and weights, then exit")
    args = parser.parse_args()
    sys.exit(run(args))


if __name__ == "__main__":
    main()
