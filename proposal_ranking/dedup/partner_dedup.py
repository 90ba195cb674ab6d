#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Duplicate detection for teaming partners.

Two checks run against the organization's partner list:
  - UEI: exact match after trimming. A UEI hit is a hard duplicate.
  - Company name: equal, contained in one another, equal once corporate
    suffixes and punctuation are removed, or bigram Dice similarity above
    0.8. Name hits are soft warnings.

Usage:
    python -m proposal_ranking.dedup.partner_dedup --org ORG-1 \
        --name "Acme Federal Solutions, LLC" [--uei ABCDEF123456] --json
"""

import argparse
import json
import logging
import re
import sys

from proposal_ranking.errors import RankingError, require
from proposal_ranking.scoring.similarity import dice_coefficient
from proposal_ranking.scoring.text import normalize
from proposal_ranking.scoring.weights import get_weights
from proposal_ranking.store.entity_store import resolve_store

logger = logging.getLogger("proposal_ranking.dedup.partner")


def clean_company_name(name, suffixes):
    """Strip corporate suffixes and ``, . -`` from a lower-cased name."""
    pattern = r"\b(" + "|".join(re.escape(s) for s in suffixes) + r")\b\.?"
    cleaned = re.sub(pattern, "", name)
    cleaned = re.sub(r"[,.\-]", "", cleaned)
    return cleaned.strip()


def match_company_name(name, other, weights=None):
    """Compare two company names.

    Returns:
        (similarity, reason) when the names match, else None.
    """
    w = weights or get_weights().partners
    name = normalize(name)
    other = normalize(other)
    if not name or not other:
        return None
    if name == other:
        return 1.0, "Identical company name"
    if name in other or other in name:
        return round(dice_coefficient(name, other), 4), "Company name contains the other"

    clean = clean_company_name(name, w.corporate_suffixes)
    clean_other = clean_company_name(other, w.corporate_suffixes)
    if clean and clean == clean_other:
        return 1.0, "Same name ignoring corporate suffix"

    ratio = dice_coefficient(clean, clean_other)
    if ratio > w.name_similarity_threshold:
        return round(ratio, 4), f"Similar company name ({round(ratio * 100)}% similar)"
    return None


def check_partner_duplicates(organization_id=None, company_name=None, uei=None,
                             exclude_id=None, store=None, db_path=None,
                             weights=None):
    """Check a teaming partner being created or edited against existing ones.

    Returns:
        dict with has_uei_duplicate, has_name_duplicate, uei_duplicate,
        name_duplicates, checked_against.
    """
    require({"organization_id": organization_id}, "organization_id")
    w = weights or get_weights().partners

    result = {
        "has_uei_duplicate": False,
        "has_name_duplicate": False,
        "uei_duplicate": None,
        "name_duplicates": [],
        "checked_against": 0,
    }
    uei = "" if uei is None else str(uei).strip()
    company_name = "" if company_name is None else str(company_name).strip()
    if not uei and not company_name:
        return result

    store = resolve_store(store, db_path)
    partners = [p for p in store.filter("TeamingPartner",
                                        {"organization_id": organization_id})
                if p.get("id") != exclude_id]
    result["checked_against"] = len(partners)

    if uei:
        for partner in partners:
            if str(partner.get("uei") or "").strip() == uei:
                result["uei_duplicate"] = partner
                result["has_uei_duplicate"] = True
                break

    if company_name:
        for partner in partners:
            match = match_company_name(company_name, partner.get("partner_name"), w)
            if match is None:
                continue
            ratio, reason = match
            result["name_duplicates"].append({
                "id": partner.get("id"),
                "partner_name": partner.get("partner_name"),
                "uei": partner.get("uei"),
                "similarity": ratio,
                "match_reason": reason,
            })
        result["has_name_duplicate"] = bool(result["name_duplicates"])

    logger.info("Teaming partner duplicate check for org %s: %d checked, "
                "uei=%s, %d name matches", organization_id, len(partners),
                result["has_uei_duplicate"], len(result["name_duplicates"]))
    return result


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Check a teaming partner for duplicates")
    parser.add_argument("--org", required=True, help="Organization ID")
    parser.add_argument("--name", help="Company name")
    parser.add_argument("--uei", help="Unique Entity Identifier")
    parser.add_argument("--exclude-id", help="Partner being edited")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--db-path", help="Override database path")
    args = parser.parse_args()

    try:
        result = check_partner_duplicates(
            organization_id=args.org, company_name=args.name, uei=args.uei,
            exclude_id=args.exclude_id, db_path=args.db_path,
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

    if result["uei_duplicate"]:
        dup = result["uei_duplicate"]
        print(f"Duplicate UEI: [{dup.get('id')}] {dup.get('partner_name')}")
    for dup in result["name_duplicates"]:
        print(f"Similar name: [{dup['id']}] {dup['partner_name']} - {dup['match_reason']}")
    if not result["has_uei_duplicate"] and not result["has_name_duplicate"]:
        print(f"No duplicates among {result['checked_against']} partners")


if __name__ == "__main__":
    main()
