#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""Build the reference-proposal prompt context for AI drafting.

Loads the chosen reference proposals with their sections, ranks them
against the proposal being written, and renders them as one markdown
context block sized to the target model's token budget (4 characters per
token). References that fail to load are reported, not fatal, unless
none load at all.

Reference relevance:
    same agency           +40
    same project type     +30
    won (prioritized)     +20, otherwise submitted +10
    similar value         +10  within 50% of the mean of both values
    has target section    +15
    comprehensive         +5   more than 50,000 characters of section text

Usage:
    python -m proposal_ranking.rfx.context_builder --proposal PROP-9 \
        --refs PROP-1 PROP-4 [--section-type technical_approach] \
        [--provider claude] --json
"""

import argparse
import json
import logging
import math
import sys

from proposal_ranking.errors import (
    NotFoundError, RankingError, ValidationError, as_number, require,
)
from proposal_ranking.scoring.pipeline import Enrichment, rank_candidates
from proposal_ranking.scoring.signals import SignalScorer
from proposal_ranking.scoring.weights import get_weights
from proposal_ranking.store.entity_store import resolve_store

logger = logging.getLogger("proposal_ranking.rfx.context_builder")

CURRENT_FIELDS = (
    "proposal_name", "project_title", "agency_name", "solicitation_number",
    "project_type", "contract_value", "status",
)


def token_budget(llm_provider=None, max_tokens=None, weights=None):
    """Explicit ``max_tokens`` or the provider's context allowance."""
    w = weights or get_weights().context
    if max_tokens:
        return max_tokens
    return w.token_limits.get(llm_provider, w.token_limits["default"])


def load_reference(store, proposal_id, organization_id):
    """Proposal plus sections for one reference.

    Raises:
        NotFoundError: Unknown proposal or one owned by another organization.
    """
    proposal = store.get("Proposal", proposal_id)
    if proposal.get("organization_id") != organization_id:
        raise NotFoundError(f"Proposal not found: {proposal_id}")
    sections = store.filter("ProposalSection", {"proposal_id": proposal_id})
    return {
        "proposal_id": proposal_id,
        "proposal": proposal,
        "sections": sections,
        "total_text_length": sum(len(s.get("content") or "") for s in sections),
    }


def _similar_value(value, other, tolerance):
    if not value or not other:
        return False
    mean = (value + other) / 2
    return mean > 0 and abs(value - other) / mean < tolerance


def score_reference(reference, current, target_section_type=None,
                    prioritize_winning=True, weights=None):
    """Build the signal set for one loaded reference proposal."""
    w = weights or get_weights().context
    scorer = SignalScorer()
    proposal = reference["proposal"]

    if proposal.get("agency_name") == current.get("agency_name"):
        scorer.add("same_agency", w.same_agency,
                   f"Same agency: {proposal.get('agency_name')}")
    if proposal.get("project_type") == current.get("project_type"):
        scorer.add("same_project_type", w.same_project_type,
                   f"Same type: {proposal.get('project_type')}")

    if prioritize_winning and proposal.get("status") == "won":
        scorer.add("status", w.winning_proposal, "Winning proposal")
    elif proposal.get("status") == "submitted":
        scorer.add("status", w.submitted_proposal, "Submitted proposal")

    if _similar_value(proposal.get("contract_value"), current.get("contract_value"),
                      w.value_tolerance):
        scorer.add("similar_value", w.similar_value, "Similar contract value")

    if target_section_type and any(s.get("section_type") == target_section_type
                                   for s in reference["sections"]):
        scorer.add("target_section", w.has_target_section,
                   f"Has {target_section_type} section")

    if reference["total_text_length"] > w.comprehensive_chars:
        scorer.add("comprehensive", w.comprehensive_content, "Comprehensive content")

    return scorer


def _money(value):
    return f"${value:,.0f}"


def _win_theme_lines(themes):
    lines = []
    for theme in themes or []:
        if isinstance(theme, dict):
            theme = theme.get("theme_title") or theme.get("theme_statement")
        if theme:
            lines.append(f"- {theme}")
    return lines


def _render_current(current, target_section_type):
    out = "# CURRENT PROPOSAL CONTEXT\n\n"
    out += f"Proposal Name: {current.get('proposal_name')}\n"
    out += f"Project Title: {current.get('project_title') or 'N/A'}\n"
    out += f"Agency: {current.get('agency_name') or 'N/A'}\n"
    out += f"Solicitation: {current.get('solicitation_number') or 'N/A'}\n"
    out += f"Type: {current.get('project_type') or 'N/A'}\n"
    if current.get("contract_value"):
        out += f"Contract Value: {_money(current['contract_value'])}\n"
    if target_section_type:
        out += f"Target Section Type: {target_section_type}\n"
    return out + "\n"


def _render_reference(number, result, target_section_type, section_chars):
    reference = result.candidate
    proposal = reference["proposal"]
    out = f"## Reference Proposal {number}: {proposal.get('proposal_name')}\n"
    out += f"**Reference ID:** REF{number}\n"
    out += (f"**Relevance Score:** {result.total_score:g}/100 "
            f"({', '.join(result.reasons)})\n")
    out += f"**Status:** {proposal.get('status')}\n"
    out += f"**Agency:** {proposal.get('agency_name') or 'N/A'}\n"
    if proposal.get("contract_value"):
        out += f"**Contract Value:** {_money(proposal['contract_value'])}\n"
    out += "\n"

    themes = _win_theme_lines(proposal.get("win_themes"))
    if themes:
        out += "**Win Themes:**\n" + "\n".join(themes) + "\n\n"

    sections = reference["sections"]
    if target_section_type:
        sections = [s for s in sections
                    if s.get("section_type") in (target_section_type, "custom")
                    or not s.get("section_type")]
    if sections:
        out += f"### Proposal Sections ({len(sections)} relevant)\n\n"
        for section in sections:
            content = section.get("content") or ""
            if not content.strip():
                continue
            if len(content) > section_chars:
                content = content[:section_chars] + "... [truncated]"
            out += (f"#### {section.get('section_name')} "
                    f"({section.get('section_type') or 'unknown'})\n{content}\n\n")
    return out


def _render_instructions(enable_citations, target_section_type):
    out = "\n# AI WRITING INSTRUCTIONS\n\n"
    out += ("Use the above reference material to inform your writing. "
            "Draw inspiration from successful structures, persuasive language, "
            "and technical approaches. ")
    if enable_citations:
        out += "\n\n**CITATION REQUIREMENTS:**\n"
        out += ("When you significantly draw from a reference proposal's approach, "
                "structure, or language, include an inline citation like this:\n")
        out += "- Format: [REF1: Technical Approach] or [REF2: Management Structure]\n"
        out += "- Place citations at the end of influenced paragraphs or sections\n"
        out += "- Use reference numbers (REF1, REF2, etc.) that match the references above\n"
    out += "\nHowever, ensure all generated content is:\n"
    out += "1. **Original** - Not copied directly from references\n"
    out += "2. **Specific** - Tailored to the current proposal\n"
    out += "3. **Traceable** - When significantly influenced by a reference, cite it: [REF#: Section]\n"
    out += "4. **Professional** - Government proposal tone\n"
    if target_section_type:
        out += f"5. **Focused** - Specifically for {target_section_type.replace('_', ' ')} section\n"
    return out + "\n"


def build_proposal_context(current_proposal_id=None, reference_proposal_ids=None,
                           target_section_type=None, max_tokens=None,
                           llm_provider="gemini", prioritize_winning=True,
                           enable_citations=True, store=None, db_path=None,
                           weights=None):
    """Assemble ranked reference material into a prompt context block.

    Args:
        current_proposal_id: Proposal being written (required, must exist).
        reference_proposal_ids: Non-empty list of reference proposal IDs.
        target_section_type: Optional section focus.
        max_tokens: Explicit token budget; defaults to the provider limit.
        llm_provider: gemini, claude, chatgpt, gpt-4 or anything else.
        prioritize_winning: Give won references the winning bonus.
        enable_citations: Append [REF#: Section] citation instructions.
        store: Optional entity store.
        db_path: Optional database path override.
        weights: Optional ContextWeights.

    Returns:
        dict with status, context and metadata.

    Raises:
        ValidationError: Missing input, or no reference could be loaded.
        NotFoundError: The current proposal does not exist.
    """
    require({"current_proposal_id": current_proposal_id}, "current_proposal_id")
    if not isinstance(reference_proposal_ids, (list, tuple)) or not reference_proposal_ids:
        raise ValidationError("reference_proposal_ids must be a non-empty array")
    w = weights or get_weights().context
    budget = token_budget(llm_provider, as_number(max_tokens, "max_tokens", None), w)
    max_chars = budget * w.chars_per_token
    section_chars = (w.section_chars if budget > w.small_budget_tokens
                     else w.section_chars_small_budget)

    store = resolve_store(store, db_path)
    current_record = store.get("Proposal", current_proposal_id)
    current = {k: current_record.get(k) for k in CURRENT_FIELDS}

    loaded, load_errors = [], []
    for pid in reference_proposal_ids:
        enrichment = Enrichment.attempt(load_reference, store, pid,
                                        current_record.get("organization_id"))
        if enrichment.ok:
            loaded.append(enrichment.value)
        else:
            logger.warning("Reference %s failed to load: %s", pid, enrichment.error)
            load_errors.append({"proposal_id": pid, "error": enrichment.error})
    if not loaded:
        raise ValidationError("Failed to load any reference proposals")

    ranked = rank_candidates(
        loaded,
        lambda ref: score_reference(ref, current, target_section_type,
                                    prioritize_winning, w),
        tiers=w.tiers,
        recency_field=None,
    )

    text = _render_current(current, target_section_type)
    text += "# REFERENCE MATERIAL FROM PAST PROPOSALS\n\n"
    text += (f"The following content is extracted from {len(ranked)} past "
             "proposal(s), ranked by relevance. Use this as inspiration for "
             "structure, language, and approach, but ensure all new content is "
             "original and tailored to the current proposal.\n")
    if target_section_type:
        text += (f"**Note:** Content is filtered to show {target_section_type} "
                 "sections and related material.\n")
    text += "\n"

    sources = []
    truncated = False
    for number, result in enumerate(ranked, 1):
        block = _render_reference(number, result, target_section_type, section_chars)
        if len(text) + len(block) > max_chars:
            logger.info("Token budget reached at reference %d of %d",
                        number, len(ranked))
            truncated = True
            break
        text += block + "---\n\n"
        proposal = result.candidate["proposal"]
        sources.append({
            "proposal_id": result.candidate["proposal_id"],
            "proposal_name": proposal.get("proposal_name"),
            "status": proposal.get("status"),
            "agency": proposal.get("agency_name"),
            "relevance_score": result.total_score,
            "relevance_reasons": result.reasons,
            "reference_number": number,
        })

    estimated_tokens = math.ceil(len(text) / w.chars_per_token)
    text += _render_instructions(enable_citations, target_section_type)

    logger.info("Built context for proposal %s: %d/%d references, ~%d tokens of %d",
                current_proposal_id, len(sources), len(reference_proposal_ids),
                estimated_tokens, budget)

    return {
        "status": "success",
        "context": {
            "current_proposal": current,
            "reference_proposals": [{
                "proposal_id": r.candidate["proposal_id"],
                "proposal_name": r.candidate["proposal"].get("proposal_name"),
                "status": r.candidate["proposal"].get("status"),
                "sections_count": len(r.candidate["sections"]),
                "relevance_score": r.total_score,
            } for r in ranked],
            "formatted_prompt_context": text,
        },
        "metadata": {
            "total_references": len(reference_proposal_ids),
            "references_included": len(sources),
            "references_failed": len(load_errors),
            "estimated_tokens": estimated_tokens,
            "max_tokens": budget,
            "token_utilization_percentage": round(estimated_tokens / budget * 100),
            "truncated": truncated,
            "sources": sources,
            "load_errors": load_errors,
            "llm_provider": llm_provider,
            "section_type_filter": target_section_type,
        },
    }


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Build reference prompt context")
    parser.add_argument("--proposal", required=True, help="Current proposal ID")
    parser.add_argument("--refs", nargs="+", required=True,
                        help="Reference proposal IDs")
    parser.add_argument("--section-type", help="Target section type")
    parser.add_argument("--max-tokens", type=int, help="Token budget override")
    parser.add_argument("--provider", default="gemini", help="LLM provider")
    parser.add_argument("--no-citations", action="store_true",
                        help="Omit citation instructions")
    parser.add_argument("--json", action="store_true", help="JSON output")
    parser.add_argument("--db-path", help="Override database path")
    args = parser.parse_args()

    try:
        result = build_proposal_context(
            current_proposal_id=args.proposal,
            reference_proposal_ids=args.refs,
            target_section_type=args.section_type,
            max_tokens=args.max_tokens,
            llm_provider=args.provider,
            enable_citations=not args.no_citations,
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
    print(result["context"]["formatted_prompt_context"])


if __name__ == "__main__":
    main()
