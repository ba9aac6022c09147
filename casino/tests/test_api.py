"""
Tests for API layer.

Tests:
- API service methods
- Session lifecycle via API
- Move submission and its error codes
- HTTP endpoints and the game-update broadcast
"""

import pytest

from ..api.schemas import (
    CreateSessionRequest,
    JoinSessionRequest,
    LeaveSessionRequest,
    DetermineRequest,
    MoveRequest,
    ErrorResponse,
    ErrorCode,
    SessionStatus,
)
from ..api.service import APIService
from ..engine_core.state import Build
from .conftest import c, loose, make_state


def trail_move(card: dict, player_index: int, token: str) -> MoveRequest:
    return MoveRequest(
        action_type="trail",
        payload={"card": card},
        player_index=player_index,
        player_token=token,
    )


class TestAPIService:
    """Tests for APIService."""

    @pytest.fixture
    def service(self):
        """Create a fresh API service."""
        return APIService()

    @pytest.fixture
    def table(self, service):
        """A started session with a known layout. Returns (session_id, token0, token1)."""
        seat0 = service.create_session(CreateSessionRequest(player_name="Ann", random_seed=5))
        seat1 = service.join_session(seat0.session_id, JoinSessionRequest(player_name="Bo"))
        session = service.session_manager.get_session(seat0.session_id)
        session.game_state = make_state(
            hands=(["4♣", "7♠"], ["2♦", "9♥"]),
            table=[loose("7♥")],
            fill_deck=True,
        )
        return seat0.session_id, seat0.player_token, seat1.player_token

    def test_create_session(self, service):
        """Creating a session takes seat 0 and waits."""
        response = service.create_session(CreateSessionRequest(player_name="Ann"))

        assert response.session_id is not None
        assert response.seat == 0
        assert response.player_token
        assert response.status == SessionStatus.WAITING

    def test_join_session_starts_game(self, service):
        created = service.create_session(CreateSessionRequest())
        joined = service.join_session(created.session_id, JoinSessionRequest(player_name="Bo"))

        assert joined.seat == 1
        assert joined.status == SessionStatus.ACTIVE

        session = service.get_session(created.session_id)
        assert [p.name for p in session.players] == ["Player 1", "Bo"]
        assert session.players[0].is_current_turn
        assert session.players[0].hand_count == 10
        assert session.round == 1

    def test_join_full_session(self, service, table):
        session_id, _, _ = table
        response = service.join_session(session_id, JoinSessionRequest())

        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.SESSION_FULL

    def test_get_nonexistent_session(self, service):
        """Getting nonexistent session returns error."""
        response = service.get_session("nonexistent-id")

        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.SESSION_NOT_FOUND

    def test_game_state_before_join(self, service):
        created = service.create_session(CreateSessionRequest())
        response = service.get_game_state(created.session_id)

        assert response.status == SessionStatus.WAITING
        assert response.game_state is None

    def test_determine(self, service, table):
        session_id, _, _ = table
        request = DetermineRequest.model_validate({
            "draggedItem": {"card": {"suit": "♠", "rank": "7"}, "source": "hand", "player": 0},
            "targetInfo": {"type": "loose", "card": {"suit": "♥", "rank": "7"}},
        })

        response = service.determine(session_id, request)

        assert [a.type for a in response.actions] == ["capture"]
        assert response.actions[0].label == "Capture 7"
        assert response.requires_modal is False

    def test_submit_move(self, service, table):
        session_id, token0, _ = table
        response = service.submit_move(
            session_id, trail_move({"suit": "♣", "rank": "4", "value": 4}, 0, token0)
        )

        assert response.success
        assert response.game_state["currentPlayer"] == 1
        assert response.game_state["tableCards"][-1]["rank"] == "4"
        assert service.get_game_state(session_id).turn_number == 1

    def test_stuck_player_reported(self, service, table):
        session_id, _, token1 = table
        session = service.session_manager.get_session(session_id)
        build = Build(build_id="build-1", cards=(c("4♣"), c("3♥")), value=7, owner=0)
        session.game_state = make_state(
            hands=(["9♦"], ["2♣", "8♥"]),
            table=[build],
            current_player=1,
            fill_deck=True,
        )

        response = service.submit_move(
            session_id, trail_move({"suit": "♣", "rank": "2", "value": 2}, 1, token1)
        )

        assert response.success
        assert response.stuck_player == 0
        assert service.get_session(session_id).stuck_player == 0

    def test_wrong_token(self, service, table):
        session_id, _, token1 = table
        response = service.submit_move(
            session_id, trail_move({"suit": "♣", "rank": "4"}, 0, token1)
        )
        assert response.error_code == ErrorCode.INVALID_TOKEN

    def test_not_your_turn(self, service, table):
        session_id, _, token1 = table
        response = service.submit_move(
            session_id, trail_move({"suit": "♦", "rank": "2"}, 1, token1)
        )

        assert response.error_code == ErrorCode.NOT_YOUR_TURN
        assert response.error == "It's not your turn."

    def test_unknown_action(self, service, table):
        session_id, token0, _ = table
        request = MoveRequest(action_type="shuffle", payload={}, player_index=0, player_token=token0)
        response = service.submit_move(session_id, request)
        assert response.error_code == ErrorCode.UNKNOWN_ACTION

    def test_broken_state_ends_session(self, service, table):
        session_id, token0, _ = table
        session = service.session_manager.get_session(session_id)
        session.game_state.player_hands.append([])

        response = service.submit_move(
            session_id, trail_move({"suit": "♣", "rank": "4"}, 0, token0)
        )

        assert response.error_code == ErrorCode.ENGINE_ERROR
        assert response.details["errors"]
        assert service.get_session(session_id).error_code == ErrorCode.SESSION_NOT_FOUND

    def test_leave_session(self, service, table):
        session_id, _, token1 = table
        response = service.leave_session(session_id, LeaveSessionRequest(player_token=token1))

        assert response.success
        assert session_id not in service.list_sessions()

    def test_leave_with_bad_token(self, service, table):
        session_id, _, _ = table
        response = service.leave_session(session_id, LeaveSessionRequest(player_token="nope"))
        assert response.error_code == ErrorCode.INVALID_TOKEN

    def test_end_session(self, service, table):
        """Can end a session."""
        session_id, _, _ = table

        assert service.end_session(session_id)
        assert session_id not in service.list_sessions()


class TestHTTPEndpoints:
    """Tests for the FastAPI application."""

    @pytest.fixture
    def service(self):
        return APIService()

    @pytest.fixture
    def client(self, service):
        from fastapi.testclient import TestClient
        from casino.api.app import create_app

        return TestClient(create_app(service))

    @pytest.fixture
    def seats(self, client, service):
        """Both seats taken, layout replaced. Returns (session_id, token0, token1)."""
        created = client.post("/api/v1/sessions", json={"player_name": "Ann"}).json()
        joined = client.post(
            f"/api/v1/sessions/{created['session_id']}/join", json={"player_name": "Bo"}
        ).json()
        session = service.session_manager.get_session(created["session_id"])
        session.game_state = make_state(
            hands=(["4♣", "7♠"], ["2♦", "9♥"]),
            table=[loose("7♥")],
            fill_deck=True,
        )
        return created["session_id"], created["player_token"], joined["player_token"]

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "casino-engine"

    def test_create_and_list(self, client):
        created = client.post("/api/v1/sessions", json={}).json()
        listed = client.get("/api/v1/sessions").json()

        assert created["seat"] == 0
        assert created["status"] == "waiting"
        assert created["session_id"] in listed["sessions"]

    def test_unknown_session_is_404(self, client):
        response = client.get("/api/v1/sessions/missing/state")

        assert response.status_code == 404
        assert response.json()["error_code"] == "SESSION_NOT_FOUND"

    def test_state_uses_wire_shape(self, client, seats):
        session_id, _, _ = seats
        body = client.get(f"/api/v1/sessions/{session_id}/state").json()

        assert body["status"] == "active"
        assert body["game_state"]["playerHands"][0][0] == {"suit": "♣", "rank": "4", "value": 4}

    def test_determine(self, client, seats):
        session_id, _, _ = seats
        response = client.post(
            f"/api/v1/sessions/{session_id}/determine",
            json={
                "draggedItem": {"card": {"suit": "♠", "rank": "7"}, "source": "hand", "player": 0},
                "targetInfo": {"type": "loose", "card": {"suit": "♥", "rank": "7"}},
            },
        )

        assert response.status_code == 200
        assert response.json()["actions"][0]["type"] == "capture"

    def test_move_and_status_codes(self, client, seats):
        session_id, token0, token1 = seats
        url = f"/api/v1/sessions/{session_id}/moves"
        card = {"suit": "♣", "rank": "4", "value": 4}

        wrong_token = client.post(url, json={
            "actionType": "trail", "payload": {"card": card}, "playerIndex": 0, "playerToken": token1,
        })
        assert wrong_token.status_code == 403

        out_of_turn = client.post(url, json={
            "actionType": "trail",
            "payload": {"card": {"suit": "♦", "rank": "2"}},
            "playerIndex": 1,
            "playerToken": token1,
        })
        assert out_of_turn.status_code == 409
        assert out_of_turn.json()["error_code"] == "NOT_YOUR_TURN"

        unknown = client.post(url, json={
            "actionType": "swap", "payload": {}, "playerIndex": 0, "playerToken": token0,
        })
        assert unknown.status_code == 400
        assert unknown.json()["error_code"] == "UNKNOWN_ACTION"

        accepted = client.post(url, json={
            "actionType": "trail", "payload": {"card": card}, "playerIndex": 0, "playerToken": token0,
        })
        assert accepted.status_code == 200
        assert accepted.json()["game_state"]["currentPlayer"] == 1

    def test_player_index_out_of_range(self, client, seats):
        session_id, token0, _ = seats
        response = client.post(f"/api/v1/sessions/{session_id}/moves", json={
            "actionType": "trail", "payload": {}, "playerIndex": 2, "playerToken": token0,
        })
        assert response.status_code == 422

    def test_websocket_receives_game_update(self, client, seats):
        session_id, _, _ = seats

        with client.websocket_connect(f"/api/v1/sessions/{session_id}/ws") as ws:
            initial = ws.receive_json()
            assert initial["type"] == "game-update"
            assert initial["payload"]["currentPlayer"] == 0
            assert len(initial["payload"]["playerHands"][0]) == 2

            ws.send_text('{"type": "ping"}')
            assert ws.receive_json() == {"type": "pong"}

            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"

    def test_leave_ends_session(self, client, seats):
        session_id, _, token1 = seats
        response = client.post(
            f"/api/v1/sessions/{session_id}/leave", json={"player_token": token1}
        )

        assert response.status_code == 200
        assert client.get(f"/api/v1/sessions/{session_id}").status_code == 404
