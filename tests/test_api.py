import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import issue_access_token
from config import get_settings
from database import Base, get_db
from main import app
from periods import local_today


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        test_client.headers.update(
            {"Authorization": f"Bearer {issue_access_token(1)}"}
        )
        yield test_client
    app.dependency_overrides.clear()


def _create_category(client, name="Food", budget="400"):
    response = client.post("/api/categories", json={"name": name, "budget": budget})
    assert response.status_code == 201
    return response.json()


def test_health_needs_no_token():
    response = TestClient(app).get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requests_without_valid_token_are_rejected(client):
    missing = client.get("/api/transactions", headers={"Authorization": ""})
    assert missing.status_code == 401
    response = client.get(
        "/api/transactions", headers={"Authorization": "Bearer nonsense"}
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Token is not valid"


def test_token_endpoint(client):
    bad = client.post("/api/auth/token", json={"api_key": "nope"})
    assert bad.status_code == 401
    good = client.post("/api/auth/token", json={"api_key": get_settings().api_key})
    assert good.status_code == 200
    token = good.json()["access_token"]
    response = client.get(
        "/api/categories", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 200


def test_recurring_transaction_round_trip(client):
    food = _create_category(client)
    response = client.post(
        "/api/transactions",
        json={
            "id": "gym",
            "date": "2024-01-31",
            "merchant": "Gym",
            "amount": "-40.00",
            "category_id": food["id"],
            "recurrence": "monthly",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert len(body) == 13
    assert body[0]["next_occurrence"] == "2024-02-29"
    assert body[1]["id"] == "gym-1"
    assert body[1]["date"] == "2024-02-29"
    assert body[1]["category"] == "Food"
    assert body[1]["amount"] == -40.0

    listed = client.get(
        "/api/transactions",
        params={"period": "custom", "start": "2024-01-01", "end": "2024-03-31"},
    )
    assert [t["id"] for t in listed.json()] == ["gym-2", "gym-1", "gym"]

    update = client.put("/api/transactions/gym-2", json={"merchant": "Pool"})
    assert update.json()["merchant"] == "Pool"
    blank = client.put("/api/transactions/gym-2", json={"merchant": "  "})
    assert blank.status_code == 422
    assert client.delete("/api/transactions/gym-2").json() == {"success": True}
    assert client.get("/api/transactions/gym-2").status_code == 404


def test_invalid_transaction_payloads(client):
    assert client.post(
        "/api/transactions",
        json={"date": "2024-01-01", "merchant": "X", "amount": "1.234"},
    ).status_code == 422
    assert client.post(
        "/api/transactions",
        json={"date": "2024-01-01", "merchant": "X", "amount": "5", "category_id": 9},
    ).status_code == 400
    unknown = client.get("/api/transactions", params={"period": "someday"})
    assert unknown.status_code == 400


def test_category_crud(client):
    food = _create_category(client)
    assert food["budget"] == 400.0
    assert client.post("/api/categories", json={"name": "food"}).status_code == 400

    updated = client.put(f"/api/categories/{food['id']}", json={"budget": "250"})
    assert updated.json()["budget"] == 250.0
    assert client.put("/api/categories/999", json={"name": "x"}).status_code == 404

    assert client.delete(f"/api/categories/{food['id']}").json() == {"success": True}
    assert client.get("/api/categories").json() == []

    seeded = client.post("/api/categories/defaults").json()
    assert len(seeded) == 7


def test_dashboard_endpoints(client):
    food = _create_category(client)
    today = local_today().isoformat()
    for payload in (
        {"merchant": "Employer", "amount": "500"},
        {"merchant": "Grocer", "amount": "-450", "category_id": food["id"]},
    ):
        payload["date"] = today
        assert client.post("/api/transactions", json=payload).status_code == 201

    summary = client.get("/api/summary", params={"period": "this_month"}).json()
    assert summary["income"] == 500.0
    assert summary["expenses"] == 450.0
    assert summary["net"] == 50.0
    assert summary["top_categories"] == [{"name": "Food", "amount": 450.0}]
    assert summary["transaction_count"] == 2

    budgets = client.get("/api/budgets").json()
    assert budgets["progress"][0]["remaining"] == -50.0
    assert budgets["progress"][0]["percentage"] == 100.0
    assert budgets["alerts"][0]["message"] == "Overspent $50.00 on Food this month!"

    insights = client.get("/api/insights", params={"period": "this_month"}).json()
    assert [i["id"] for i in insights] == ["budget-exceeded", "positive-net-flow"]

    report = client.get("/api/reports/monthly").json()
    assert report["categories"]["Food"]["spent"] == 450.0
    assert report["categories"]["Food"]["remaining"] == -50.0
    assert report["categories"]["Food"]["percentage"] == 112.5

    bad_range = client.get(
        "/api/reports/monthly", params={"start": "2024-02-01", "end": "2024-01-01"}
    )
    assert bad_range.status_code == 400

    export = client.get("/api/transactions/export.csv")
    assert export.headers["content-type"].startswith("text/csv")
    header = export.text.splitlines()[0]
    assert header == "Date,Merchant,Amount,Category,Description,Type"

    prompt = client.get("/api/advisor/prompt")
    assert "1. Food: $450.00" in prompt.text


def test_audit_log_and_reset(client):
    client.post(
        "/api/transactions",
        json={"date": "2024-01-01", "merchant": "X", "amount": "-5"},
    )
    reset = client.delete("/api/transactions").json()
    assert reset == {"success": True, "deleted": 1}
    logs = client.get("/api/audit-logs").json()
    assert [entry["action"] for entry in logs] == ["RESET", "CREATE"]
    assert logs[0]["entity_type"] == "ALL_TRANSACTIONS"


def test_advisor_messages(client):
    client.post(
        "/api/transactions",
        json={"date": "2024-01-01", "merchant": "X", "amount": "-5"},
    )
    response = client.post(
        "/api/advisor/messages", json={"question": "How am I doing?"}
    )
    assert response.status_code == 200
    system, user = response.json()["messages"]
    assert "- Top Spending Categories: Uncategorized" in system["content"]
    assert user["content"] == "How am I doing?"
    blank = client.post("/api/advisor/messages", json={"question": "  "})
    assert blank.status_code == 400


def test_one_off_transaction_cannot_be_made_recurring(client):
    created = client.post(
        "/api/transactions",
        json={"id": "once", "date": "2024-01-01", "merchant": "X", "amount": "-5"},
    )
    assert created.status_code == 201
    response = client.put("/api/transactions/once", json={"recurrence": "monthly"})
    assert response.status_code == 400
    txn = client.get("/api/transactions/once").json()
    assert txn["recurrence"] == "none"
    assert txn["next_occurrence"] is None
