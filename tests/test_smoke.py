def test_health_ok(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_unknown_route_is_json_404(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json["message"] == "Route not found"


def test_cors_headers_on_api(client):
    r = client.get("/api/health")
    assert r.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
    assert "Authorization" in r.headers["Access-Control-Allow-Headers"]


def test_unmigrated_database_returns_503(tmp_path, monkeypatch):
    from app.taskmate import create_app

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'empty.db'}")
    monkeypatch.setenv("ENV", "test")
    app = create_app()
    r = app.test_client().get("/api/tasks")
    assert r.status_code == 503
    assert r.json["message"] == "Database schema out of date"


def test_production_refuses_sqlite(monkeypatch):
    import pytest

    from app.taskmate import create_app

    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    monkeypatch.setenv("SECRET_KEY", "strong")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()
