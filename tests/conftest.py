import pytest

from app.taskmate import create_app
from app.taskmate.models import Base


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("AUTH_RATE_LIMIT", "50")
    for k in ("JWT_EXPIRES_HOURS", "AUTH_RATE_WINDOW", "CORS_ORIGIN", "LOG_LEVEL"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def register(client):
    """Register an account and return its bearer headers."""

    def _register(email="ada@example.com", name="Ada Lovelace", password="secret1"):
        r = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
        assert r.status_code == 201, r.json
        return {"Authorization": f"Bearer {r.json['token']}"}

    return _register


@pytest.fixture()
def headers(register):
    return register()
