import pytest
from fastapi.testclient import TestClient

from api.main import app, get_engine
from workflow.error_handling import StoreError

from conftest import APPROVER, AUTHOR, REVIEWER_1, REVIEWER_2, SIGNER


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def create(client, **overrides):
    body = {"title": "Consulting Agreement", "createdBy": AUTHOR, "client": "Initech"}
    body.update(overrides)
    response = client.post("/contracts", json=body)
    assert response.status_code == 201, response.text
    return response.json()["contract"]


def test_health_and_security_headers(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_create_and_list(client):
    contract = create(client, startDate="2025-01-01", endDate="2025-12-31")

    assert contract["status"] == "draft"
    assert contract["displayStatus"] == "draft"
    assert contract["createdBy"] == AUTHOR

    listing = client.get("/contracts").json()
    assert listing["count"] == 1
    assert listing["contracts"][0]["id"] == contract["id"]
    assert client.get("/contracts", params={"created_by": "nobody@corp.com"}).json()["count"] == 0


def test_create_accepts_snake_case(client):
    response = client.post("/contracts", json={"title": "Snake", "created_by": AUTHOR})

    assert response.status_code == 201
    assert response.json()["contract"]["title"] == "Snake"


def test_create_with_blank_title_is_unprocessable(client):
    response = client.post("/contracts", json={"title": " ", "createdBy": AUTHOR})

    assert response.status_code == 422
    assert response.json() == {
        "success": False,
        "message": "Contract title is required",
        "error": "validation_error",
    }


def test_unknown_contract_returns_404(client):
    assert client.get("/contracts/contract_nope").status_code == 404

    response = client.post("/contracts/contract_nope/review", json={"reviewer": REVIEWER_1})
    assert response.status_code == 404
    assert response.json()["message"] == "Contract not found"


def test_full_lifecycle_over_http(client):
    contract_id = create(client)["id"]

    response = client.post(
        f"/contracts/{contract_id}/submit-review",
        json={"reviewers": [REVIEWER_1, REVIEWER_2], "approver": APPROVER},
    )
    assert response.json()["contract"]["status"] == "review_approval"

    queue = client.get("/reviews", params={"identity": REVIEWER_1}).json()
    assert [c["id"] for c in queue["contracts"]] == [contract_id]

    early = client.post(f"/contracts/{contract_id}/approve", json={"approver": APPROVER})
    assert early.status_code == 400
    assert early.json()["error"] == "reviewers_incomplete"

    for reviewer in (REVIEWER_1, REVIEWER_2):
        client.post(f"/contracts/{contract_id}/review", json={"reviewer": reviewer})

    approved = client.post(f"/contracts/{contract_id}/approve", json={"approver": APPROVER})
    assert approved.status_code == 200
    assert approved.json()["contract"]["status"] == "waiting_for_signature"

    client.post(f"/contracts/{contract_id}/submit-signature", json={"signer": SIGNER})
    assert client.get("/signatures", params={"identity": SIGNER}).json()["count"] == 1

    signed = client.post(
        f"/contracts/{contract_id}/sign",
        json={"signer": SIGNER, "signatureImage": "data:image/png;base64,AAAA"},
    )
    assert signed.status_code == 200
    body = signed.json()
    assert body["success"] is True
    assert body["contract"]["status"] == "signed"
    assert body["contract"]["signer"]["status"] == "signed"


def test_request_modification_requires_comments(client):
    contract_id = create(client)["id"]
    client.post(
        f"/contracts/{contract_id}/submit-review",
        json={"reviewers": [REVIEWER_1], "approver": APPROVER},
    )

    response = client.post(
        f"/contracts/{contract_id}/request-modification",
        json={"requestedBy": APPROVER, "role": "approver"},
    )
    assert response.status_code == 422

    response = client.post(
        f"/contracts/{contract_id}/request-modification",
        json={"requestedBy": APPROVER, "role": "approver", "comments": "needs pricing fix"},
    )
    contract = response.json()["contract"]
    assert contract["status"] == "draft"
    assert contract["reviewers"] is None
    assert len(contract["modificationRequests"]) == 1


def test_stale_version_returns_409(client):
    contract = create(client)
    client.patch(f"/contracts/{contract['id']}", json={"title": "Edited"})

    response = client.patch(
        f"/contracts/{contract['id']}",
        json={"title": "Stale", "expectedVersion": contract["version"]},
    )

    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


def test_patch_ignores_unset_fields(client):
    contract = create(client, description="Original")

    response = client.patch(f"/contracts/{contract['id']}", json={"client": "Umbrella"})

    updated = response.json()["contract"]
    assert updated["client"] == "Umbrella"
    assert updated["description"] == "Original"


def test_xfdf_update_and_delete(client):
    contract_id = create(client)["id"]

    response = client.put(f"/contracts/{contract_id}/xfdf", json={"xfdfString": "<xfdf/>"})
    assert response.json()["contract"]["xfdfString"] == "<xfdf/>"

    assert client.delete(f"/contracts/{contract_id}").status_code == 200
    assert client.get(f"/contracts/{contract_id}").status_code == 404


def test_dashboard(client):
    create(client)

    stats = client.get("/dashboard", params={"identity": AUTHOR}).json()

    assert stats == {"active": 0, "expiring": 0, "pendingApproval": 0}


def test_store_failure_returns_503(engine, client, monkeypatch):
    def broken():
        raise StoreError("Failed to load contracts: disk unavailable")

    monkeypatch.setattr(engine, "_load", broken)

    response = client.get("/contracts")
    assert response.status_code == 503
    assert response.json()["error"] == "store_write_failure"

    response = client.post("/contracts", json={"title": "X", "createdBy": AUTHOR})
    assert response.status_code == 503
    assert response.json()["message"] == "Failed to create contract. Please try again."


def test_missing_body_field_gets_result_shape(client):
    contract_id = create(client)["id"]

    response = client.post(f"/contracts/{contract_id}/review", json={})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "validation_error"
    assert "reviewer" in body["message"]
    assert "detail" not in body


def test_malformed_date_gets_result_shape(client):
    response = client.post(
        "/contracts", json={"title": "Bad dates", "createdBy": AUTHOR, "startDate": "garbage"}
    )

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "validation_error"
    assert "startDate" in body["message"]
    assert client.get("/contracts").json()["count"] == 0


def test_engine_singleton_built_once_across_threads(monkeypatch, store):
    import threading
    import time

    import api.main as api_main
    from workflow.engine import ContractWorkflowEngine

    built = []

    def slow_factory():
        time.sleep(0.05)
        built.append(1)
        return ContractWorkflowEngine(store)

    monkeypatch.setattr(api_main, "engine", None)
    monkeypatch.setattr(api_main, "create_workflow_engine", slow_factory)

    engines = []
    threads = [threading.Thread(target=lambda: engines.append(get_engine())) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(built) == 1
    assert all(e is engines[0] for e in engines)
