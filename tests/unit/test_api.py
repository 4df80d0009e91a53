"""API tests using FastAPI's TestClient against the SQLite test session"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from docintake.api.dependencies import get_validation_service
from docintake.database import get_db
from docintake.domain.validation.service import ValidationService
from docintake.errors import TransientProviderError
from docintake.main import app
from docintake.models import ExecutionStatus, ValidationExecution


@pytest.fixture
def client(db_session, pipeline, queue):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_validation_service] = lambda: ValidationService(db_session, pipeline=pipeline, queue=queue)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def headers(org):
    return {"X-Org-ID": str(org.id), "X-Actor": "ops@acme.com"}


class TestTriggerValidationEndpoint:
    def test_inline_validation(self, client, headers, make_document, db_session):
        """Test POST validate returns the new result"""
        document = make_document()

        response = client.post(f"/api/v1/documents/{document.id}/validate", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["document_id"] == str(document.id)
        assert data["verdict"] == "verified"
        assert data["expiry_status"] == "valid"
        execution = db_session.query(ValidationExecution).one()
        assert execution.triggered_by == "ops@acme.com"

    def test_deferred_validation(self, client, headers, make_document):
        """Test defer=true answers 202 with the queued job"""
        document = make_document()

        response = client.post(
            f"/api/v1/documents/{document.id}/validate",
            headers=headers,
            json={"defer": True},
        )

        assert response.status_code == 202
        data = response.json()
        assert data["document_id"] == str(document.id)
        assert data["status"] == "queued"
        assert data["attempt"] == 0

    def test_rate_limited(self, client, headers, make_document, org, db_session):
        """Test the window overflow answers 429 with Retry-After"""
        org.settings_json = {"validation": {"rate_limit": {"max_requests": 1, "window_seconds": 60}}}
        db_session.commit()
        document = make_document()
        client.post(f"/api/v1/documents/{document.id}/validate", headers=headers)

        response = client.post(f"/api/v1/documents/{document.id}/validate", headers=headers)

        assert response.status_code == 429
        assert 1 <= int(response.headers["Retry-After"]) <= 60
        assert response.json()["detail"]["details"]["limit"] == 1

    def test_provider_unavailable(self, client, headers, make_document, classifier, db_session):
        """Test a transient provider failure answers 503 and keeps the execution"""
        classifier.outputs = [TransientProviderError("provider unavailable")]
        document = make_document()

        response = client.post(f"/api/v1/documents/{document.id}/validate", headers=headers)

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "60"
        assert db_session.query(ValidationExecution).one().status == ExecutionStatus.FAILED

    def test_unknown_document(self, client, headers):
        """Test an unknown document answers 404"""
        response = client.post(f"/api/v1/documents/{uuid4()}/validate", headers=headers)

        assert response.status_code == 404

    def test_other_org(self, client, make_document):
        """Test documents are scoped to the X-Org-ID organization"""
        document = make_document()

        response = client.post(f"/api/v1/documents/{document.id}/validate", headers={"X-Org-ID": str(uuid4())})

        assert response.status_code == 404

    def test_missing_org_header(self, client, make_document):
        """Test requests without X-Org-ID are rejected"""
        document = make_document()

        assert client.post(f"/api/v1/documents/{document.id}/validate").status_code == 422

    def test_invalid_org_header(self, client, make_document):
        """Test a malformed X-Org-ID is a bad request"""
        document = make_document()

        response = client.post(f"/api/v1/documents/{document.id}/validate", headers={"X-Org-ID": "acme"})

        assert response.status_code == 400


class TestValidationResultEndpoint:
    def test_not_validated_yet(self, client, headers, make_document):
        """Test a document without result answers 404"""
        document = make_document()

        assert client.get(f"/api/v1/documents/{document.id}/validation", headers=headers).status_code == 404

    def test_latest_result(self, client, headers, make_document, pipeline, db_session):
        """Test GET validation returns the stored result"""
        document = make_document()
        pipeline.validate(document.id)
        db_session.commit()

        response = client.get(f"/api/v1/documents/{document.id}/validation", headers=headers)

        assert response.status_code == 200
        assert response.json()["document_type"] == "passport"
        assert response.json()["prompt_version"] == "test_v1"


class TestRequestEndpoints:
    def test_request_status(self, client, headers, document_request):
        """Test GET status returns the current lifecycle state"""
        response = client.get(f"/api/v1/requests/{document_request.id}/status", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "sent"
        assert data["expected_count"] == 1
        assert data["document_count"] == 0

    def test_request_history(self, client, headers, document_request, make_document, pipeline, db_session):
        """Test GET history lists transitions oldest first"""
        document = make_document(request=document_request)
        pipeline.validate(document.id)
        db_session.commit()

        response = client.get(f"/api/v1/requests/{document_request.id}/history", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [e["new_status"] for e in data["entries"]] == ["received", "completed"]

    def test_unknown_request(self, client, headers):
        """Test an unknown request answers 404"""
        assert client.get(f"/api/v1/requests/{uuid4()}/status", headers=headers).status_code == 404


class TestObservabilityEndpoints:
    def test_health(self, client):
        """Test the health check reports the database"""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "ok"}

    def test_metrics(self, client):
        """Test Prometheus metrics are exposed"""
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "docintake_" in response.text
