from errors import ConstraintError


def test_create_fixture(client, make_player):
    p1 = make_player()
    p2 = make_player()
    resp = client.post(
        "/api/fixtures",
        json={
            "player1Id": p1["id"],
            "player2Id": p2["id"],
            "round": "Semi Final",
            "matchId": "SF-001",
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["player1Id"] == p1["id"]
    assert body["player2Id"] == p2["id"]
    assert body["round"] == "Semi Final"
    assert body["matchId"] == "SF-001"
    assert body["status"] == "pending"

    resp = client.get(f"/api/fixtures/{body['id']}")
    assert resp.status_code == 200
    assert resp.json() == body


def test_create_fixture_invalid_body(client):
    resp = client.post(
        "/api/fixtures",
        json={"player1Id": "one", "round": "Final", "matchId": "F-001", "status": "done"},
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Invalid fixture data"
    locs = {err["loc"][0] for err in body["errors"]}
    assert locs == {"player1Id", "player2Id", "status"}


def test_list_fixtures(client, make_fixture):
    first = make_fixture(matchId="QF-001")
    second = make_fixture(matchId="QF-002")
    resp = client.get("/api/fixtures")
    assert resp.status_code == 200
    assert [f["matchId"] for f in resp.json()] == ["QF-001", "QF-002"]
    assert [f["id"] for f in resp.json()] == [first["id"], second["id"]]


def test_get_fixture_invalid_and_missing(client):
    assert client.get("/api/fixtures/x1").status_code == 400
    resp = client.get("/api/fixtures/424242")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Fixture not found"}


def test_generate_fixtures_pairs_in_order(client, make_player):
    ids = [make_player()["id"] for _ in range(3)]
    resp = client.post("/api/fixtures/generate", json={"playerIds": ids})
    assert resp.status_code == 201
    fixtures = resp.json()
    assert [(f["player1Id"], f["player2Id"]) for f in fixtures] == [
        (ids[0], ids[1]),
        (ids[0], ids[2]),
        (ids[1], ids[2]),
    ]
    assert all(f["status"] == "pending" for f in fixtures)
    assert len({f["matchId"] for f in fixtures}) == 3
    assert len(client.get("/api/fixtures").json()) == 3


def test_generate_fixtures_count(client):
    ids = list(range(1, 7))
    resp = client.post("/api/fixtures/generate", json={"playerIds": ids})
    assert resp.status_code == 201
    fixtures = resp.json()
    assert len(fixtures) == 15
    pairs = {frozenset((f["player1Id"], f["player2Id"])) for f in fixtures}
    assert len(pairs) == 15
    assert all(len(p) == 2 for p in pairs)


def test_generate_fixtures_is_deterministic(client):
    ids = [8, 3, 5, 1]
    first = client.post("/api/fixtures/generate", json={"playerIds": ids}).json()
    second = client.post("/api/fixtures/generate", json={"playerIds": ids}).json()
    assert [(f["player1Id"], f["player2Id"]) for f in first] == [
        (f["player1Id"], f["player2Id"]) for f in second
    ]


def test_generate_fixtures_needs_two_players(client):
    for ids in ([], [1], [2, 2]):
        resp = client.post("/api/fixtures/generate", json={"playerIds": ids})
        assert resp.status_code == 400
        assert resp.json()["message"] == "At least 2 players are required to generate fixtures"
    assert client.get("/api/fixtures").json() == []


def test_generate_fixtures_invalid_body(client):
    resp = client.post("/api/fixtures/generate", json={"playerIds": [1, "2"]})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid data"

    resp = client.post("/api/fixtures/generate", json={"players": [1, 2]})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["loc"] == ["playerIds"]


def test_generate_fixtures_storage_fault(client, storage, monkeypatch):
    def boom(player_ids):
        raise RuntimeError("disk full")

    monkeypatch.setattr(storage, "generate_fixtures", boom)
    resp = client.post("/api/fixtures/generate", json={"playerIds": [1, 2]})
    assert resp.status_code == 500
    assert resp.json() == {"message": "Failed to generate fixtures"}


def test_create_fixture_id_out_of_range(client):
    resp = client.post(
        "/api/fixtures",
        json={"player1Id": 1, "player2Id": 2**64, "round": "Final", "matchId": "F-001"},
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid fixture data"
    assert client.get("/api/fixtures").json() == []


def test_generate_fixtures_id_out_of_range(client):
    resp = client.post("/api/fixtures/generate", json={"playerIds": [1, 99999999999999999999]})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid data"
    assert resp.json()["errors"][0]["loc"] == ["playerIds", 1]
    assert client.get("/api/fixtures").json() == []


def test_create_fixture_constraint_is_conflict(client, storage, monkeypatch):
    def rejected(data):
        raise ConstraintError("Fixture violates a database constraint")

    monkeypatch.setattr(storage, "create_fixture", rejected)
    resp = client.post(
        "/api/fixtures",
        json={"player1Id": 1, "player2Id": 2, "round": "Final", "matchId": "F-001"},
    )
    assert resp.status_code == 409
    assert resp.json() == {"message": "Fixture violates a database constraint"}


def test_generate_fixtures_constraint_is_conflict(client, storage, monkeypatch):
    # Su Postgres la foreign key rifiuta id di giocatori inesistenti.
    def rejected(player_ids):
        raise ConstraintError("Fixture violates a database constraint")

    monkeypatch.setattr(storage, "generate_fixtures", rejected)
    resp = client.post("/api/fixtures/generate", json={"playerIds": [1, 2]})
    assert resp.status_code == 409
    assert resp.json() == {"message": "Fixture violates a database constraint"}


def test_generated_match_ids_are_full_uuid_tokens(client):
    fixtures = client.post("/api/fixtures/generate", json={"playerIds": [1, 2, 3]}).json()
    for f in fixtures:
        assert f["matchId"].startswith("RR-")
        assert len(f["matchId"]) == len("RR-") + 32
