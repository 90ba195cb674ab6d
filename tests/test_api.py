#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Tests for the Flask JSON API: auth, error mapping, and each endpoint."""

from conftest import ORG


class TestAuth:

    def test_health_is_public(self, api_client):
        resp = api_client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"

    def test_missing_user_is_unauthorized(self, api_client):
        resp = api_client.post("/api/duplicates/past-performance",
                               json={"organization_id": ORG, "title": "x"})
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Unauthorized"}

    def test_api_key_required_when_configured(self, api_client, auth_headers,
                                              monkeypatch):
        monkeypatch.setenv("PROPOSAL_RANKING_API_KEY", "s3cret")
        body = {"organization_id": ORG, "title": "x"}
        resp = api_client.post("/api/duplicates/past-performance",
                               json=body, headers=auth_headers)
        assert resp.status_code == 401
        resp = api_client.post("/api/duplicates/past-performance", json=body,
                               headers=dict(auth_headers, **{"X-Api-Key": "s3cret"}))
        assert resp.status_code == 200


class TestErrorMapping:

    def test_missing_fields_is_400(self, api_client, auth_headers):
        resp = api_client.post("/api/duplicates/past-performance", json={},
                               headers=auth_headers)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "organization_id, title required"}

    def test_missing_current_proposal_is_404(self, api_client, auth_headers):
        resp = api_client.post("/api/chunks/search", headers=auth_headers, json={
            "query_text": "zero trust", "current_proposal_id": "PROP-nope",
            "organization_id": ORG})
        assert resp.status_code == 404
        assert resp.get_json() == {"status": "error",
                                   "error": "Proposal not found: PROP-nope"}

    def test_unknown_route_is_json(self, api_client, auth_headers):
        resp = api_client.get("/api/nothing-here", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.get_json()["status"] == "error"

    def test_store_failure_is_500(self, api_client, auth_headers, tmp_path,
                                  monkeypatch):
        import proposal_ranking.store.entity_store as entity_store
        # A directory cannot be opened as a database
        monkeypatch.setattr(entity_store, "DB_PATH", tmp_path)
        resp = api_client.post("/api/duplicates/resources", headers=auth_headers,
                               json={"organization_id": ORG, "file_name": "a.pdf",
                                     "title": "A"})
        assert resp.status_code == 500
        assert resp.get_json()["status"] == "error"


class TestEndpoints:

    def test_past_performance(self, api_client, auth_headers, insert):
        insert("past_performances", id="PP-1", title="Help Desk",
               contract_number="ABC-123")
        resp = api_client.post("/api/duplicates/past-performance", headers=auth_headers,
                               json={"organization_id": ORG, "title": "New",
                                     "contract_number": "abc-123"})
        data = resp.get_json()
        assert data["status"] == "success"
        assert data["duplicates"][0]["match_score"] == 100

    def test_numeric_fields_are_compared_as_text(self, api_client, auth_headers,
                                                 insert):
        insert("past_performances", id="PP-1", title="Help Desk",
               contract_number="12345", customer_agency="DISA")
        resp = api_client.post("/api/duplicates/past-performance", headers=auth_headers,
                               json={"organization_id": ORG, "title": "New",
                                     "contract_number": 12345, "customer_agency": 7})
        assert resp.status_code == 200
        assert resp.get_json()["duplicates"][0]["match_score"] == 100

        insert("resources", id="RES-1", title="2026", file_name="2026.pdf")
        resp = api_client.post("/api/duplicates/resources", headers=auth_headers,
                               json={"organization_id": ORG, "file_name": 2026,
                                     "title": 2026})
        assert resp.status_code == 200
        assert resp.get_json()["duplicates"][0]["id"] == "RES-1"

        insert("teaming_partners", id="TP-1", partner_name="Vendor 42", uei="123456")
        resp = api_client.post("/api/duplicates/teaming-partners", headers=auth_headers,
                               json={"organization_id": ORG, "uei": 123456,
                                     "company_name": 42})
        assert resp.status_code == 200
        assert resp.get_json()["has_uei_duplicate"] is True

    def test_resources(self, api_client, auth_headers, insert):
        insert("resources", id="RES-1", title="Org Chart", file_name="org_chart.pdf")
        resp = api_client.post("/api/duplicates/resources", headers=auth_headers,
                               json={"organization_id": ORG,
                                     "file_name": "Org Chart.pdf",
                                     "title": "org chart"})
        data = resp.get_json()
        assert data["has_duplicates"] is True
        assert data["duplicates"][0]["id"] == "RES-1"

    def test_teaming_partners(self, api_client, auth_headers, insert):
        insert("teaming_partners", id="TP-1", partner_name="Acme LLC", uei="U1")
        resp = api_client.post("/api/duplicates/teaming-partners", headers=auth_headers,
                               json={"organization_id": ORG, "uei": "U1"})
        assert resp.get_json()["has_uei_duplicate"] is True

    def test_chunk_search(self, api_client, auth_headers, sample_chunks):
        resp = api_client.post("/api/chunks/search", headers=auth_headers, json={
            "query_text": "zero trust network segmentation",
            "current_proposal_id": "PROP-current", "organization_id": ORG,
            "only_winning_proposals": "true"})
        data = resp.get_json()
        assert resp.status_code == 200
        assert [r["id"] for r in data["results"]] == ["CHK-won-1"]
        assert data["search_metadata"]["only_winning_proposals"] is True

    def test_adaptive_references(self, api_client, auth_headers, sample_feedback):
        resp = api_client.post("/api/references/adaptive", headers=auth_headers,
                               json={"organization_id": ORG, "max_references": 2})
        data = resp.get_json()
        assert data["status"] == "success"
        assert len(data["references"]) == 2
        assert data["references"][0]["proposal_id"] == "PROP-won"

    def test_null_flag_keeps_default(self, api_client, auth_headers, sample_feedback):
        resp = api_client.post("/api/references/adaptive", headers=auth_headers,
                               json={"organization_id": ORG,
                                     "prioritize_winners": None})
        data = resp.get_json()
        assert data["metadata"]["prioritize_winners"] is True
        assert data["references"][0]["recommendation_reason"].startswith(
            "winning proposal")

    def test_reference_quality(self, api_client, auth_headers, sample_feedback):
        resp = api_client.get(f"/api/references/quality?organization_id={ORG}",
                              headers=auth_headers)
        data = resp.get_json()
        assert data["top_references"][0]["proposal_id"] == "PROP-won"

    def test_supplementary_context(self, api_client, auth_headers, insert,
                                   sample_proposals):
        insert("solicitation_documents", id="DOC-qa", proposal_id="PROP-current",
               file_name="qa.pdf", is_supplementary=True,
               supplementary_type="q_a_response", rag_ingested=True)
        resp = api_client.post("/api/context/supplementary", headers=auth_headers,
                               json={"proposal_id": "PROP-current"})
        data = resp.get_json()
        assert data["success"] is True
        assert data["documents"][0]["priority_score"] == 100

    def test_proposal_context(self, api_client, auth_headers, sample_proposals):
        resp = api_client.post("/api/context/proposal", headers=auth_headers, json={
            "current_proposal_id": "PROP-current",
            "reference_proposal_ids": ["PROP-won"], "llm_provider": "claude"})
        data = resp.get_json()
        assert resp.status_code == 200
        assert data["metadata"]["max_tokens"] == 100000
        assert data["metadata"]["references_included"] == 1

    def test_proposal_context_bad_input(self, api_client, auth_headers):
        resp = api_client.post("/api/context/proposal", headers=auth_headers,
                               json={"current_proposal_id": "PROP-current"})
        assert resp.status_code == 400
        assert resp.get_json() == {
            "error": "reference_proposal_ids must be a non-empty array"}
