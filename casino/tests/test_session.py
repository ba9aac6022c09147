"""
Tests for sessions and the game loop.

Tests:
- Session lifecycle (create, join, leave, cleanup)
- Turn enforcement
- Move rejection codes
- State replacement after accepted moves
"""

import threading

import pytest

from ..bots import FirstLegalPolicy
from ..engine_core.action import Action, DraggedItem, TargetInfo
from ..engine_core.state import Build, EngineStateError
from ..session import SessionManager, SessionState, SessionError, GameLoop, LoopState
from .conftest import c, loose, make_state


@pytest.fixture
def manager():
    return SessionManager()


@pytest.fixture
def started(manager):
    """A session with both seats taken and a seeded deal."""
    session, _ = manager.create_session("Ann", seed=11)
    manager.join_session(session.session_id, "Bo")
    return session


class CountingLock:
    """threading.Lock that counts acquisitions."""

    def __init__(self):
        self._lock = threading.Lock()
        self.acquisitions = 0

    def __enter__(self):
        self._lock.acquire()
        self.acquisitions += 1
        return self

    def __exit__(self, *exc):
        self._lock.release()

    def locked(self):
        return self._lock.locked()


class TestSessionLifecycle:
    """Tests for SessionManager."""

    def test_create_waits_for_opponent(self, manager):
        session, seat = manager.create_session("Ann")

        assert seat.seat == 0
        assert seat.token
        assert session.state is SessionState.WAITING
        assert session.game_state is None
        assert session.session_id in manager.list_active_sessions()

    def test_join_starts_game(self, manager):
        session, _ = manager.create_session("Ann")
        _, seat = manager.join_session(session.session_id, "Bo")

        assert seat.seat == 1
        assert session.state is SessionState.ACTIVE
        assert session.game_state is not None
        assert [len(h) for h in session.game_state.player_hands] == [10, 10]
        assert session.player_name(1) == "Bo"

    def test_seeded_deal_is_reproducible(self, manager):
        first, _ = manager.create_session("Ann", seed=3)
        second, _ = manager.create_session("Ann", seed=3)
        manager.join_session(first.session_id, "Bo")
        manager.join_session(second.session_id, "Bo")
        assert first.game_state.to_dict() == second.game_state.to_dict()

    def test_join_full_session(self, manager, started):
        with pytest.raises(SessionError) as exc_info:
            manager.join_session(started.session_id, "Cy")
        assert exc_info.value.code == "SESSION_FULL"

    def test_join_unknown_session(self, manager):
        with pytest.raises(SessionError) as exc_info:
            manager.join_session("missing", "Cy")
        assert exc_info.value.code == "SESSION_NOT_FOUND"

    def test_tokens_identify_seats(self, started):
        tokens = [p.token for p in started.players]
        assert tokens[0] != tokens[1]
        assert started.seat_for_token(tokens[1]) == 1
        assert started.seat_for_token("wrong") is None
        assert started.seat_for_token(None) is None

    def test_leave_ends_session(self, manager, started):
        assert manager.leave_session(started.session_id, 1)
        assert manager.get_session(started.session_id) is None
        assert started.state is SessionState.ABANDONED
        assert started.game_state is None

    def test_cleanup_only_finished_sessions(self, manager, started):
        started.state = SessionState.GAME_OVER
        started.created_at -= 10_000
        waiting, _ = manager.create_session("Cy")
        waiting.created_at -= 10_000

        removed = manager.cleanup_stale_sessions(max_age_seconds=3600)

        assert removed == 1
        assert manager.get_session(started.session_id) is None
        assert manager.get_session(waiting.session_id) is waiting


class TestGameLoop:
    """Tests for move submission."""

    def _set_state(self, session, state):
        session.game_state = state

    def test_not_started(self, manager):
        session, _ = manager.create_session("Ann")
        result = GameLoop(session).submit_move(Action.trail(0, c("4♣")))

        assert not result.success
        assert result.error_code == "GAME_NOT_STARTED"
        assert result.loop_state is LoopState.WAITING_PLAYERS

    def test_accepted_move_replaces_state(self, started):
        self._set_state(started, make_state(hands=(["4♣", "9♦"], ["2♦"]), fill_deck=True))
        loop = GameLoop(started)
        before = started.game_state

        result = loop.submit_move(Action.trail(0, c("4♣")))

        assert result.success
        assert started.game_state is result.game_state
        assert started.game_state is not before
        assert started.game_state.current_player == 1
        assert started.turn_number == 1
        assert started.history[0]["actionType"] == "trail"

    def test_wire_move_accepted(self, started):
        self._set_state(started, make_state(hands=(["4♣", "9♦"], ["2♦"]), fill_deck=True))
        move = {
            "actionType": "trail",
            "payload": {"card": {"suit": "♣", "rank": "4", "value": 4}},
            "playerIndex": 0,
        }
        result = GameLoop(started).submit_move(move)
        assert result.success

    def test_out_of_turn_rejected(self, started):
        self._set_state(started, make_state(hands=(["4♣"], ["2♦"])))
        before = started.game_state

        result = GameLoop(started).submit_move(Action.trail(1, c("2♦")))

        assert not result.success
        assert result.error_code == "NOT_YOUR_TURN"
        assert result.error == "It's not your turn."
        assert started.game_state is before

    def test_unknown_action_type(self, started):
        move = {"actionType": "steal", "payload": {}, "playerIndex": 0}
        result = GameLoop(started).submit_move(move)

        assert not result.success
        assert result.error_code == "UNKNOWN_ACTION"

    def test_illegal_hand_move(self, started):
        self._set_state(started, make_state(hands=(["4♣", "9♦"], ["2♦"]), table=[loose("4♥")]))
        result = GameLoop(started).submit_move(Action.trail(0, c("4♣")))
        assert result.error_code == "NO_VALID_ACTIONS"

    def test_handler_rejection(self, started):
        self._set_state(started, make_state(hands=(["4♣"], ["2♦"])))
        result = GameLoop(started).submit_move(Action.create_staging_stack(0, c("4♣"), c("A♥")))
        assert result.error_code == "INVALID_MOVE"

    def test_invalid_state_raises(self, started):
        broken = make_state(hands=(["4♣"], ["2♦"]))
        broken.player_hands.append([])
        self._set_state(started, broken)

        with pytest.raises(EngineStateError):
            GameLoop(started).submit_move(Action.trail(0, c("4♣")))

    def test_last_card_ends_game(self, started):
        self._set_state(
            started,
            make_state(
                hands=(["4♣"], []),
                captures=([["A♠"]], []),
                last_capturer=0,
            ),
        )
        loop = GameLoop(started)

        result = loop.submit_move(Action.trail(0, c("4♣")))

        assert result.success
        assert result.game_state.game_over
        assert result.winner == 0
        assert started.state is SessionState.GAME_OVER
        assert loop.state is LoopState.GAME_OVER

        again = loop.submit_move(Action.trail(1, c("2♦")))
        assert again.error_code == "GAME_OVER"

    def test_staging_last_card_keeps_turn(self, started):
        """Staging the last hand card leaves the turn with the stack owner."""
        self._set_state(
            started,
            make_state(hands=(["5♠"], ["3♦", "7♣"]), table=[loose("4♥")], fill_deck=True),
        )
        loop = GameLoop(started)

        staged = loop.submit_move(Action.create_staging_stack(0, c("5♠"), c("4♥")))

        assert staged.success
        assert started.game_state.current_player == 0
        assert started.game_state.player_hands[0] == []

        stack = started.game_state.staging_stack_for(0)
        finalized = loop.submit_move(Action.finalize_staging_stack(0, stack))

        assert finalized.success
        assert started.game_state.current_player == 1
        assert started.game_state.active_build_for(0).value == 9

    def test_cancel_after_staging_last_card(self, started):
        self._set_state(
            started,
            make_state(hands=(["5♠"], ["3♦", "7♣"]), table=[loose("4♥")], fill_deck=True),
        )
        loop = GameLoop(started)
        loop.submit_move(Action.create_staging_stack(0, c("5♠"), c("4♥")))

        stack = started.game_state.staging_stack_for(0)
        cancelled = loop.submit_move(Action.cancel_staging_stack(0, stack))

        assert cancelled.success
        assert started.game_state.current_player == 0
        assert started.game_state.player_hands[0] == [c("5♠")]

    def test_player_left_without_actions_is_reported(self, started):
        """Round 1: a build the owner cannot capture locks trailing."""
        build = Build(build_id="build-1", cards=(c("4♣"), c("3♥")), value=7, owner=0)
        self._set_state(
            started,
            make_state(
                hands=(["9♦"], ["2♣", "8♥"]),
                table=[build],
                current_player=1,
                fill_deck=True,
            ),
        )

        result = GameLoop(started).submit_move(Action.trail(1, c("2♣")))

        assert result.success
        assert result.stuck
        assert "Player 1 has no valid actions" in result.changes
        assert started.metadata["stuck_player"] == 0

    def test_ordinary_move_not_stuck(self, started):
        self._set_state(started, make_state(hands=(["4♣", "9♦"], ["2♦"]), fill_deck=True))
        result = GameLoop(started).submit_move(Action.trail(0, c("4♣")))

        assert result.success
        assert not result.stuck
        assert "stuck_player" not in started.metadata

    def test_bot_reads_state_under_lock(self, started):
        self._set_state(started, make_state(hands=(["4♣", "9♦"], ["2♦"]), fill_deck=True))
        started.lock = CountingLock()
        seen = []

        class RecordingPolicy(FirstLegalPolicy):
            def select_action(self, state, legal_actions):
                seen.append((started.lock.acquisitions, started.lock.locked()))
                return super().select_action(state, legal_actions)

        result = GameLoop(started).run_bot_turn(RecordingPolicy())

        assert result.success
        # Snapshot taken under the lock, released before the bot decides
        assert seen == [(1, False)]
        assert started.lock.acquisitions == 2

    def test_bot_turn_before_start(self, manager):
        session, _ = manager.create_session("Ann")
        result = GameLoop(session).run_bot_turn(FirstLegalPolicy())
        assert result.error_code == "GAME_NOT_STARTED"

    def test_determine_uses_current_state(self, started):
        self._set_state(started, make_state(hands=(["7♠"], ["2♦"]), table=[loose("7♥")]))
        result = GameLoop(started).determine(
            DraggedItem(card=c("7♠"), source="hand", player=0),
            TargetInfo.loose(c("7♥")),
        )
        assert [a.label for a in result.actions] == ["Capture 7"]

    def test_determine_before_start(self, manager):
        session, _ = manager.create_session("Ann")
        result = GameLoop(session).determine(
            DraggedItem(card=c("7♠")), TargetInfo.table()
        )
        assert result.actions == []
        assert result.error_message == "Game has not started"
