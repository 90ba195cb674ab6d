#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Tests for duplicate detection: past performance, resources, teaming partners."""

import pytest

from proposal_ranking.dedup.partner_dedup import (
    check_partner_duplicates, clean_company_name, match_company_name,
)
from proposal_ranking.dedup.past_performance_dedup import (
    check_past_performance_duplicates, score_past_performance, title_similarity,
)
from proposal_ranking.dedup.resource_dedup import (
    check_resource_duplicates, normalize_file_name,
)
from proposal_ranking.errors import ValidationError
from proposal_ranking.scoring.weights import PartnerWeights

from conftest import ORG, OTHER_ORG


# =========================================================================
# PAST PERFORMANCE
# =========================================================================
class TestPastPerformanceScoring:
    """Signal extraction for a single candidate."""

    def test_boundary_title_overlap_contributes_nothing(self):
        assert title_similarity("Network Security Assessment for DoD",
                                "DoD Network Security Assessment") == 60.0
        scorer = score_past_performance(
            {"title": "Network Security Assessment for DoD"},
            {"title": "DoD Network Security Assessment"},
        )
        assert not scorer.fired("title")
        assert scorer.total == 0

    def test_title_above_threshold_scores_half_the_percentage(self):
        scorer = score_past_performance(
            {"title": "Enterprise Network Security Assessment"},
            {"title": "Network Security Assessment Services"},
        )
        assert scorer.breakdown() == {"title": 37.5}
        assert scorer.reasons == ["Similar title (75% word overlap)"]

    def test_contract_match_short_circuits(self):
        scorer = score_past_performance(
            {"title": "Completely different", "contract_number": " abc-123 ",
             "customer_agency": "Army"},
            {"title": "Something else", "contract_number": "ABC-123",
             "customer_agency": "Army"},
        )
        assert scorer.total == 100
        assert scorer.reasons == ["Exact contract number match"]

    def test_agency_partial_match(self):
        scorer = score_past_performance(
            {"title": "x", "customer_agency": "Army"},
            {"title": "y", "customer_agency": "Department of the Army"},
        )
        assert scorer.breakdown() == {"agency": 20}

    def test_date_overlap_needs_all_four_dates(self):
        params = {"title": "x", "pop_start_date": "2022-01-01",
                  "pop_end_date": "2023-12-31"}
        overlapping = {"title": "y", "pop_start_date": "2023-06-01",
                       "pop_end_date": "2025-01-01"}
        disjoint = {"title": "y", "pop_start_date": "2024-01-01",
                    "pop_end_date": "2025-01-01"}
        open_ended = {"title": "y", "pop_start_date": "2023-06-01"}
        assert score_past_performance(params, overlapping).fired("period_of_performance")
        assert not score_past_performance(params, disjoint).fired("period_of_performance")
        assert not score_past_performance(params, open_ended).fired("period_of_performance")


class TestPastPerformanceDuplicates:
    """End-to-end duplicate check against the database."""

    def test_exact_contract_number(self, tmp_db, insert):
        insert("past_performances", id="PP-1", title="Help Desk Support",
               contract_number="ABC-123")
        result = check_past_performance_duplicates(
            organization_id=ORG, title="Network Operations",
            contract_number=" abc-123 ")
        assert result["status"] == "success"
        assert result["total_found"] == 1
        dup = result["duplicates"][0]
        assert dup["record"]["id"] == "PP-1"
        assert dup["match_score"] == 100
        assert dup["confidence"] == "high"
        assert result["has_high_confidence_duplicate"] is True

    def test_combined_signals(self, tmp_db, insert):
        insert("past_performances", id="PP-1",
               title="Network Security Assessment Services",
               customer_agency="Department of the Army")
        result = check_past_performance_duplicates(
            organization_id=ORG, title="Enterprise Network Security Assessment",
            customer_agency="department of the army")
        dup = result["duplicates"][0]
        assert dup["match_score"] == pytest.approx(67.5)
        assert dup["confidence"] == "medium"
        assert dup["match_reasons"] == ["Similar title (75% word overlap)",
                                        "Same customer agency"]
        assert result["has_high_confidence_duplicate"] is False

    def test_score_of_exactly_forty_is_not_reported(self, tmp_db, insert):
        insert("past_performances", id="PP-1", title="Unrelated",
               customer_agency="Army", pop_start_date="2022-01-01",
               pop_end_date="2022-12-31")
        result = check_past_performance_duplicates(
            organization_id=ORG, title="Other", customer_agency="Navy Army Group",
            pop_start_date="2022-06-01", pop_end_date="2023-01-01")
        # partial agency 20 + overlap 20 = 40, which must exceed the threshold
        assert result["duplicates"] == []
        assert result["total_found"] == 0

    def test_excludes_record_being_edited_and_other_orgs(self, tmp_db, insert):
        insert("past_performances", id="PP-self", title="A", contract_number="C-1")
        insert("past_performances", id="PP-other-org", title="A",
               contract_number="C-1", organization_id=OTHER_ORG)
        result = check_past_performance_duplicates(
            organization_id=ORG, title="A", contract_number="C-1",
            exclude_id="PP-self")
        assert result["duplicates"] == []

    def test_top_five_with_full_count(self, tmp_db, insert):
        for i in range(7):
            insert("past_performances", id=f"PP-{i}", title=f"Record {i}",
                   contract_number="W91-001",
                   created_date=f"2026-01-0{i + 1}T00:00:00Z")
        result = check_past_performance_duplicates(
            organization_id=ORG, title="New", contract_number="W91-001")
        assert len(result["duplicates"]) == 5
        assert result["total_found"] == 7
        # equal scores: most recent first
        assert result["duplicates"][0]["record"]["id"] == "PP-6"

    def test_missing_fields(self, tmp_db):
        with pytest.raises(ValidationError) as exc:
            check_past_performance_duplicates(organization_id=ORG)
        assert exc.value.message == "title required"
        with pytest.raises(ValidationError) as exc:
            check_past_performance_duplicates()
        assert exc.value.message == "organization_id, title required"


# =========================================================================
# RESOURCES
# =========================================================================
class TestResourceDuplicates:

    def test_file_name_normalization(self):
        assert normalize_file_name("Past_Performance-Vol 1.pdf") == "pastperformancevol1.pdf"

    def test_all_signals_clamped_to_100(self, tmp_db, insert):
        insert("resources", id="RES-1", title="Capability Statement",
               file_name="cap_statement.pdf", resource_type="capability_statement",
               file_size=204800, usage_count=3)
        result = check_resource_duplicates(
            organization_id=ORG, file_name="Cap Statement.pdf",
            title="capability statement", resource_type="capability_statement",
            file_size=205000)
        assert result["has_duplicates"] is True
        assert result["checked_against"] == 1
        dup = result["duplicates"][0]
        assert dup["similarity_score"] == 100
        assert dup["match_reason"] == ("Identical file name, Identical title, "
                                       "Same resource type, Same file size")
        assert dup["usage_count"] == 3

    def test_results_capped_at_five(self, tmp_db, insert):
        for i in range(7):
            insert("resources", id=f"RES-{i}", title="Org Chart",
                   file_name="org_chart.pdf")
        result = check_resource_duplicates(
            organization_id=ORG, file_name="org_chart.pdf", title="Org Chart")
        assert len(result["duplicates"]) == 5
        assert result["checked_against"] == 7
        assert all(0 <= d["similarity_score"] <= 100 for d in result["duplicates"])

    def test_similar_title_alone_is_below_threshold(self, tmp_db, insert):
        insert("resources", id="RES-1", title="Capability Statement 2025",
               file_name="a.pdf", resource_type="brochure")
        result = check_resource_duplicates(
            organization_id=ORG, file_name="b.docx",
            title="Capability Statement 2026", resource_type="brochure")
        assert result == {"has_duplicates": False, "duplicates": [],
                          "checked_against": 1}

    def test_partial_file_name_and_similar_title(self, tmp_db, insert):
        insert("resources", id="RES-1", title="Capability Statement 2025",
               file_name="capability_statement.pdf")
        result = check_resource_duplicates(
            organization_id=ORG, file_name="capability_statement.pdf.bak",
            title="Capability Statement 2026")
        dup = result["duplicates"][0]
        assert dup["similarity_score"] == 50
        assert dup["match_reason"] == "Similar file name, Similar title (96% similar)"

    def test_missing_fields(self, tmp_db):
        with pytest.raises(ValidationError) as exc:
            check_resource_duplicates(organization_id=ORG, title="x")
        assert exc.value.message == "file_name required"


# =========================================================================
# TEAMING PARTNERS
# =========================================================================
class TestPartnerDuplicates:

    def test_clean_company_name(self):
        suffixes = PartnerWeights().corporate_suffixes
        assert clean_company_name("acme federal solutions, llc", suffixes) == \
            "acme federal solutions"
        assert clean_company_name("acme corp.", suffixes) == "acme"

    def test_name_match_kinds(self):
        assert match_company_name("Acme", "acme") == (1.0, "Identical company name")
        assert match_company_name("Acme Federal Solutions Inc.",
                                  "Acme Federal Solutions, LLC") == \
            (1.0, "Same name ignoring corporate suffix")
        contained = match_company_name("Acme Federal", "Acme Federal Solutions")
        assert contained[1] == "Company name contains the other"
        assert match_company_name("Globex Corporation", "Initech LLC") is None

    def test_uei_and_name_duplicates(self, tmp_db, insert):
        insert("teaming_partners", id="TP-1", partner_name="Acme Federal Solutions, LLC",
               uei="ABCDEF123456")
        insert("teaming_partners", id="TP-2", partner_name="Initech LLC",
               uei="ZZZZZZ999999")
        result = check_partner_duplicates(
            organization_id=ORG, company_name="Acme Federal Solutions Inc.",
            uei=" ZZZZZZ999999 ")
        assert result["has_uei_duplicate"] is True
        assert result["uei_duplicate"]["id"] == "TP-2"
        assert result["has_name_duplicate"] is True
        assert [d["id"] for d in result["name_duplicates"]] == ["TP-1"]
        assert result["checked_against"] == 2

    def test_exclude_id(self, tmp_db, insert):
        insert("teaming_partners", id="TP-1", partner_name="Acme", uei="U1")
        result = check_partner_duplicates(
            organization_id=ORG, company_name="Acme", uei="U1", exclude_id="TP-1")
        assert result["has_uei_duplicate"] is False
        assert result["has_name_duplicate"] is False

    def test_nothing_to_check(self, tmp_db):
        result = check_partner_duplicates(organization_id=ORG)
        assert result["checked_against"] == 0
        assert result["name_duplicates"] == []
