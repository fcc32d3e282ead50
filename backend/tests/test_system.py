"""
Health, version and CORS tests.
"""


def test_health_reports_checks(client, db_session, site):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["sites"] == 1
    assert body["checks"]["gateway"]["status"] == "healthy"


def test_health_degraded_without_internal_key(app, client, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "INTERNAL_API_KEY", None)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "degraded"


def test_version(client):
    body = client.get("/version").get_json()
    assert body["api_version"] == "1.0.0"
    assert "SECRET_KEY" not in str(body)


def test_cors_allow_list(client, db_session):
    allowed = client.get("/version", headers={"Origin": "http://localhost:5173"})
    assert allowed.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    other = client.get("/version", headers={"Origin": "http://evil.example"})
    assert "Access-Control-Allow-Origin" not in other.headers
