import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from main import create_app


@pytest.fixture
def engine():
    # Database in memoria condiviso tra i thread del TestClient.
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def app(engine):
    return create_app(engine, lazy_init=False)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def storage(app, client):
    return app.state.storage


@pytest.fixture
def make_player(client):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        payload = {
            "name": f"Player {n}",
            "email": f"player{n}@example.com",
            "phone": None,
            "gamertag": f"tag{n}",
        }
        payload.update(overrides)
        resp = client.post("/api/players", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def make_fixture(client, make_player):
    def _make(**overrides):
        p1 = make_player()
        p2 = make_player()
        payload = {
            "player1Id": p1["id"],
            "player2Id": p2["id"],
            "round": "Quarter Final",
            "matchId": "QF-001",
        }
        payload.update(overrides)
        resp = client.post("/api/fixtures", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make
