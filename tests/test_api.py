"""HTTP 層：身分驗證、異常與狀態碼的對應，以及完整的一場遊戲"""
import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_game_manager
from conftest import (
    ALICE,
    BOB,
    BURN_BPS,
    GUARANTEE_BPS,
    OPERATOR,
    POOL,
    PRIZE_DISTRIBUTION_BPS,
    TICKET_PRICE,
    build_manager,
)
from core.game_manager import GameManager
from database import Settings, get_db, get_settings
from main import app

RANDOMNESS_KEY = "randomness-secret"
KEYS = {
    "operator-key": OPERATOR,
    "alice-key": ALICE,
    "bob-key": BOB,
}
AS_OPERATOR = {"X-API-Key": "operator-key"}
AS_ALICE = {"X-API-Key": "alice-key"}
AS_BOB = {"X-API-Key": "bob-key"}
AS_RANDOMNESS = {"X-Randomness-Key": RANDOMNESS_KEY}


@pytest.fixture
def api_manager(ledger, randomness, clock, session_factory):
    manager = build_manager(ledger, randomness, clock)
    manager.bind_randomness(session_factory)
    return manager


@pytest.fixture
def client(session_factory, api_manager):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    settings = Settings(api_keys=KEYS, randomness_api_key=RANDOMNESS_KEY)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_game_manager] = lambda: api_manager
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_game(client, headers=AS_OPERATOR):
    return client.post("/api/games", headers=headers, json={
        "cost_per_ticket": TICKET_PRICE,
        "burn_bps": BURN_BPS,
        "prize_distribution_bps": PRIZE_DISTRIBUTION_BPS,
        "survival_bps": GUARANTEE_BPS,
    })


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_no_game_yet(client):
    response = client.get("/api/games/current")
    assert response.status_code == 200
    assert response.json() == {"game_id": None, "status": "NOT_STARTED"}


def test_create_game(client):
    response = create_game(client)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OPENED"
    assert body["cost_per_ticket"] == TICKET_PRICE

    rounds = client.get(f"/api/games/{body['id']}/rounds").json()
    assert [r["prize_distribution_bps"] for r in rounds] == PRIZE_DISTRIBUTION_BPS


def test_error_status_codes(client):
    assert create_game(client, headers={}).status_code == 401
    assert create_game(client, headers={"X-API-Key": "unknown"}).status_code == 401
    assert create_game(client, headers=AS_ALICE).status_code == 403
    assert client.get("/api/games/99").status_code == 404
    assert client.post("/api/games/99/start", headers=AS_OPERATOR).status_code == 404

    game_id = create_game(client).json()["id"]
    assert create_game(client).status_code == 400
    response = client.post(f"/api/games/{game_id}/buy", headers=AS_ALICE, json={"size": 0})
    assert response.status_code == 400
    response = client.post(f"/api/games/{game_id}/claim", headers=AS_ALICE, json={})
    assert response.status_code == 400


def test_identity_in_body_is_ignored(client):
    response = client.post("/api/games", headers=AS_ALICE, json={
        "operator": OPERATOR,
        "cost_per_ticket": TICKET_PRICE,
        "burn_bps": BURN_BPS,
        "prize_distribution_bps": PRIZE_DISTRIBUTION_BPS,
        "survival_bps": GUARANTEE_BPS,
    })
    assert response.status_code == 403


class TestRandomnessCallback:
    @pytest.mark.parametrize("headers", [
        {},
        {"X-Randomness-Key": "guess"},
        AS_OPERATOR,
    ])
    def test_forged_callback_is_rejected(self, client, api_manager, headers):
        game_id = create_game(client).json()["id"]
        client.post(f"/api/games/{game_id}/start", headers=AS_OPERATOR)
        request_id = client.get(f"/api/games/{game_id}/rounds/1").json()["request_id"]

        response = client.post("/api/randomness/fulfill", headers=headers, json={
            "sender": api_manager.randomness.address,
            "request_id": request_id,
            "seed": 1234,
        })

        assert response.status_code == 403
        round_one = client.get(f"/api/games/{game_id}/rounds/1").json()
        assert round_one["entropy"] == "0"
        assert client.get(f"/api/games/{game_id}").json()["status"] == "PROCESSING"

    def test_authenticated_callback_applies(self, client):
        game_id = create_game(client).json()["id"]
        client.post(f"/api/games/{game_id}/start", headers=AS_OPERATOR)
        request_id = client.get(f"/api/games/{game_id}/rounds/1").json()["request_id"]

        response = client.post("/api/randomness/fulfill", headers=AS_RANDOMNESS, json={
            "request_id": request_id,
            "seed": 1234,
        })

        assert response.json() == {"applied": True}
        assert client.get(f"/api/games/{game_id}/rounds/1").json()["entropy"] == "1234"

    def test_callback_disabled_without_configured_key(self, client):
        app.dependency_overrides[get_settings] = lambda: Settings(api_keys=KEYS)
        response = client.post("/api/randomness/fulfill", headers={"X-Randomness-Key": ""}, json={
            "request_id": "0x01",
            "seed": 1,
        })
        assert response.status_code == 403


def test_claim_pays_only_the_caller(client, ledger, randomness):
    game_id = create_game(client).json()["id"]
    ledger.approve(ALICE, POOL, TICKET_PRICE * 2)
    client.post(f"/api/games/{game_id}/buy", headers=AS_ALICE, json={"size": 2})
    client.post(f"/api/games/{game_id}/start", headers=AS_OPERATOR)
    randomness.fulfill(randomness.last_request_id, 0xABC)
    client.post(f"/api/games/{game_id}/check", headers=AS_ALICE)
    client.post(f"/api/games/{game_id}/complete", headers=AS_OPERATOR)

    response = client.post(
        f"/api/games/{game_id}/claim",
        headers=AS_BOB,
        json={"participant_id": ALICE, "to": "mallory"}
    )

    assert response.status_code == 400
    assert ledger.balance_of("mallory") == 0
    record = client.get(f"/api/games/{game_id}/rounds/1/participants/{ALICE}").json()
    assert record["claimed"] is False


def test_full_game(client, ledger):
    game_id = create_game(client).json()["id"]
    for participant, headers, size in ((ALICE, AS_ALICE, 3), (BOB, AS_BOB, 2)):
        ledger.approve(participant, POOL, TICKET_PRICE * size)
        response = client.post(f"/api/games/{game_id}/buy", headers=headers, json={"size": size})
        assert response.status_code == 200
        assert response.json()["participant_id"] == participant
        assert response.json()["remaining_unit_count"] == size

    response = client.post(f"/api/games/{game_id}/start", headers=AS_OPERATOR)
    assert response.json()["status"] == "PROCESSING"

    stale = client.post("/api/randomness/fulfill", headers=AS_RANDOMNESS, json={
        "request_id": "0xstale",
        "seed": 7,
    })
    assert stale.json() == {"applied": False}

    request_id = client.get(f"/api/games/{game_id}/rounds/1").json()["request_id"]
    response = client.post("/api/randomness/fulfill", headers=AS_RANDOMNESS, json={
        "request_id": request_id,
        "seed": 0xABC,
    })
    assert response.json() == {"applied": True}
    assert client.get(f"/api/games/{game_id}").json()["status"] == "STARTED"

    for headers in (AS_ALICE, AS_BOB):
        assert client.post(f"/api/games/{game_id}/check", headers=headers).status_code == 200

    response = client.post(f"/api/games/{game_id}/vote", headers=AS_ALICE, json={"choice": "STOP"})
    assert response.json()["stop_vote_count"] == 3
    response = client.post(f"/api/games/{game_id}/vote", headers=AS_BOB, json={"choice": "CONTINUE"})
    assert response.json()["continue_vote_count"] == 2

    game = client.post(f"/api/games/{game_id}/processing", headers=AS_OPERATOR).json()
    assert game["status"] == "COMPLETED"
    assert game["final_prize_per_survivor"] == game["max_prize_pool"] * 1000 // 10_000 // 5

    balance = ledger.balance_of(ALICE)
    response = client.post(f"/api/games/{game_id}/claim", headers=AS_ALICE, json={})
    assert response.json()["amount"] == 3 * game["final_prize_per_survivor"]
    assert ledger.balance_of(ALICE) == balance + response.json()["amount"]

    record = client.get(f"/api/games/{game_id}/rounds/1/participants/{ALICE}").json()
    assert record["claimed"] is True
    assert client.get("/api/games/current").json() == {"game_id": game_id, "status": "COMPLETED"}


def test_manager_from_settings(ledger, randomness):
    settings = Settings(operators=["ops"], max_buy_limit=5, buy_limit_mode="cumulative")

    manager = GameManager.from_settings(settings, ledger, randomness)

    assert manager.operators.is_operator("ops")
    assert not manager.operators.is_operator(OPERATOR)
    assert manager.tickets.max_buy_limit == 5
    assert manager.tickets.buy_limit_mode == "cumulative"
