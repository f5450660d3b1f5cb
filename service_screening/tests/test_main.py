"""
HTTP API tests for the Screening Service.
"""

import asyncio
import httpx
import pytest
from fastapi.testclient import TestClient

from shared.config import get_config
from service_screening.app.main import ScreeningService
from service_screening.app.persistence import InMemoryPersistence

from factories import submission_record


BMI_RULE = {
    "rule_key": "bmi_over_40",
    "rule_name": "BMI over 40",
    "rule_type": "hard_disqualify",
    "field_path": "calculated_bmi",
    "operator": "gt",
    "value": "40",
    "severity": "critical",
    "description": "BMI above 40",
}

TATTOO_RULE = {
    "rule_key": "tattoos",
    "rule_name": "Tattoos or piercings",
    "rule_type": "soft_flag",
    "field_path": "has_tattoos_piercings",
    "operator": "eq",
    "value": "true",
    "severity": "low",
}


class TestScreeningAPI:
    """Test cases for the screening HTTP API."""

    @pytest.fixture
    def persistence(self):
        return InMemoryPersistence()

    @pytest.fixture
    def service(self, persistence):
        config = get_config("screening", 8020, storage_backend="memory", batch_pause_seconds=0)
        return ScreeningService(config=config, persistence=persistence)

    @pytest.fixture
    def client(self, service):
        with TestClient(service.app) as client:
            yield client

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "screening"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"storage": "ok"}

    def test_fields(self, client):
        response = client.get("/screening/fields")

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 1
        paths = {field["field_path"] for field in data["fields"]}
        assert {"calculated_bmi", "calculated_age", "has_tattoos_piercings"} <= paths

    def test_create_rule(self, client):
        response = client.post("/screening/rules", json=BMI_RULE)

        assert response.status_code == 201
        data = response.json()
        assert data["rule_value"] == {"operator": "gt", "value": 40}
        assert data["display_order"] == 1
        assert data["is_active"] is True

    def test_duplicate_rule_key(self, client):
        client.post("/screening/rules", json=BMI_RULE)

        response = client.post("/screening/rules", json=BMI_RULE)

        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_RULE_KEY"

    def test_unknown_field_path(self, client):
        response = client.post("/screening/rules", json={**BMI_RULE, "field_path": "calculated_iq"})

        assert response.status_code == 422
        assert response.json()["code"] == "UNKNOWN_FIELD_PATH"
        assert response.json()["details"] == {"field_path": "calculated_iq"}

    def test_ordering_operator_with_text_value(self, client):
        response = client.post("/screening/rules", json={**BMI_RULE, "value": "heavy"})

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_unknown_operator_rejected(self, client):
        response = client.post("/screening/rules", json={**BMI_RULE, "operator": "between"})

        assert response.status_code == 422

    def test_list_rules(self, client):
        client.post("/screening/rules", json=TATTOO_RULE)
        client.post("/screening/rules", json=BMI_RULE)

        response = client.get("/screening/rules")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [rule["rule_key"] for rule in data["rules"]] == ["bmi_over_40", "tattoos"]

    def test_toggle_and_active_filter(self, client):
        rule_id = client.post("/screening/rules", json=BMI_RULE).json()["id"]
        client.post("/screening/rules", json=TATTOO_RULE)

        toggled = client.post(f"/screening/rules/{rule_id}/toggle")
        active = client.get("/screening/rules", params={"active_only": True})

        assert toggled.json()["is_active"] is False
        assert [rule["rule_key"] for rule in active.json()["rules"]] == ["tattoos"]

    def test_update_rule(self, client):
        rule_id = client.post("/screening/rules", json=BMI_RULE).json()["id"]

        response = client.put(f"/screening/rules/{rule_id}", json={"value": 45, "severity": "high"})

        assert response.status_code == 200
        assert response.json()["rule_value"] == {"operator": "gt", "value": 45}
        assert response.json()["severity"] == "high"

    def test_update_rule_key_rejected(self, client):
        rule_id = client.post("/screening/rules", json=BMI_RULE).json()["id"]

        response = client.put(f"/screening/rules/{rule_id}", json={"rule_key": "renamed"})

        assert response.status_code == 422
        assert client.get(f"/screening/rules/{rule_id}").json()["rule_key"] == "bmi_over_40"

    def test_delete_rule(self, client):
        rule_id = client.post("/screening/rules", json=BMI_RULE).json()["id"]

        response = client.delete(f"/screening/rules/{rule_id}")

        assert response.status_code == 200
        assert client.get(f"/screening/rules/{rule_id}").status_code == 404

    def test_missing_rule(self, client):
        response = client.delete("/screening/rules/missing")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_evaluate_submission(self, client, persistence):
        client.post("/screening/rules", json=BMI_RULE)
        client.post("/screening/rules", json=TATTOO_RULE)
        persistence.add_submission(submission_record("sub-b", has_tattoos_piercings=True))

        response = client.post("/screening/submissions/sub-b/evaluate")

        assert response.status_code == 200
        data = response.json()
        assert data["submission_id"] == "sub-b"
        assert data["score"] == 95
        assert data["recommendation"] == "review_required"
        assert [flag["rule_key"] for flag in data["flags"]] == ["tattoos"]
        assert persistence.submissions["sub-b"]["ai_score"] == 95

    def test_evaluate_missing_submission(self, client):
        response = client.post("/screening/submissions/nope/evaluate")

        assert response.status_code == 404

    def test_batch(self, client, persistence):
        client.post("/screening/rules", json=BMI_RULE)
        for i in range(4):
            persistence.add_submission(submission_record(f"sub-{i}"))

        response = client.post("/screening/evaluations/batch", params={"limit": 3})

        assert response.status_code == 200
        assert response.json() == {"requested": 3, "processed": 3, "failed": 0, "cancelled": False}

    def test_batch_limit_bounds(self, client):
        assert client.post("/screening/evaluations/batch", params={"limit": 0}).status_code == 422

    def test_cancel_without_running_batch(self, client):
        response = client.post("/screening/evaluations/batch/cancel")

        assert response.status_code == 200
        assert response.json()["cancelled"] is False

    def test_metrics_endpoint(self, client, persistence):
        persistence.add_submission(submission_record("sub-1"))
        client.post("/screening/submissions/sub-1/evaluate")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'evaluations_total{recommendation="suitable"} 1.0' in response.text


class TestBatchCancellation:
    """Cancellation across overlapping batch requests."""

    @pytest.fixture
    def persistence(self):
        persistence = InMemoryPersistence()
        for i in range(12):
            persistence.add_submission(submission_record(f"sub-{i:02d}"))
        return persistence

    @pytest.fixture
    def service(self, persistence):
        config = get_config("screening", 8020, storage_backend="memory", batch_pause_seconds=0.5)
        return ScreeningService(config=config, persistence=persistence)

    @pytest.mark.asyncio
    async def test_cancel_reaches_batch_outliving_another(self, service):
        transport = httpx.ASGITransport(app=service.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            long_batch = asyncio.create_task(
                client.post("/screening/evaluations/batch", params={"limit": 12})
            )
            # First chunk is done and the long batch is pausing
            await asyncio.sleep(0.1)

            short = await client.post("/screening/evaluations/batch", params={"limit": 1})
            cancel = await client.post("/screening/evaluations/batch/cancel")
            long_response = await long_batch

        assert short.json()["processed"] == 1
        assert cancel.json()["cancelled"] is True
        data = long_response.json()
        assert data["cancelled"] is True
        assert data["requested"] == 12
        assert data["processed"] == 3
        assert service._batch_cancels == set()

    @pytest.mark.asyncio
    async def test_cancel_after_all_batches_finish(self, service):
        service.batch_orchestrator.pause_seconds = 0
        transport = httpx.ASGITransport(app=service.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            await client.post("/screening/evaluations/batch", params={"limit": 2})
            cancel = await client.post("/screening/evaluations/batch/cancel")

        assert cancel.json()["cancelled"] is False
