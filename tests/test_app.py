from fastapi.testclient import TestClient

from app.main import app


def _client(tmp_path, monkeypatch) -> TestClient:
    monkeypatch.setenv("DB_PATH", str(tmp_path / "app.db"))
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    return TestClient(app)


def test_sync_rejects_unknown_type(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        res = client.post("/api/sync/volcano")
        assert res.status_code == 400
        assert res.json()["success"] is False


def test_status_and_alert_run_on_empty_store(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        status = client.get("/api/sync/status").json()
        assert status["last_sync"] is None
        assert status["scheduler"]["running"] is False

        res = client.post("/api/alerts/run")
        assert res.status_code == 200
        assert res.json()["new"] == 0
        assert client.get("/api/topics").json() == []


def test_subscription_lifecycle(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        res = client.post(
            "/api/subscriptions", json={"email": "A@Example.com", "country": "Japan"}
        )
        assert res.status_code == 201
        sub = res.json()
        assert sub["email"] == "a@example.com"
        assert sub["status"] == "confirmed"
        assert sub["active_disasters"] == 0

        listed = client.get("/api/subscriptions", params={"email": "A@example.com"}).json()
        assert [s["country"] for s in listed] == ["Japan"]

        topics = client.get("/api/topics").json()
        assert [t["country"] for t in topics] == ["Japan"]

        assert client.delete(f"/api/subscriptions/{sub['subscription_handle']}").status_code == 200
        assert client.delete("/api/subscriptions/nope").status_code == 404

        bad = client.post("/api/subscriptions", json={"email": "not-an-email", "country": "Japan"})
        assert bad.status_code == 400


def test_country_listing_on_empty_store(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        res = client.get("/api/topics/countries")
        assert res.status_code == 200
        assert res.json() == []
