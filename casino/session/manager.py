"""
Session Manager - Creates and manages game sessions.

LIFECYCLE:
1. A player creates a session -> seat 0, session waits for an opponent
2. A second player joins -> seat 1, the deck is dealt, play starts
3. During the game:
   - Clients ask the engine which actions a card drop allows
   - Clients submit moves; the orchestrator checks the turn, applies
     the move and replaces the whole state
4. Game ends -> session kept until cleanup so clients can read scores
5. A player leaves -> session ends, state discarded

PERSISTENCE RULES:
- NO database for gameplay
- Game state is ephemeral (session-scoped only)
- Each seat gets an opaque token; moves are accepted only with it
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import logging
import secrets
import threading
import time
import uuid

from ..engine_core.state import GameState, NUM_PLAYERS, initialize_game


logger = logging.getLogger(__name__)


class SessionState(Enum):
    """State of a game session."""
    WAITING = "waiting"  # Created, waiting for the second player
    ACTIVE = "active"  # Game in progress
    GAME_OVER = "game_over"  # Game completed
    ABANDONED = "abandoned"  # A player left or the state broke


class SessionError(Exception):
    """Raised for session lifecycle errors (not found, full, ended)."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


@dataclass
class PlayerSeat:
    """A seated player."""
    seat: int
    name: str
    token: str
    joined_at: float


@dataclass
class Session:
    """
    An ephemeral game session for two players.

    Contains:
    - The seated players and their tokens
    - Current canonical game state
    - The history of accepted moves

    The lock serializes every read-modify-write of game_state.
    """
    session_id: str
    created_at: float

    state: SessionState = SessionState.WAITING
    game_state: GameState | None = None

    players: list[PlayerSeat] = field(default_factory=list)
    history: list[dict[str, Any]] = field(default_factory=list)

    seed: int | None = None
    ended_at: float | None = None
    end_reason: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def is_active(self) -> bool:
        """Check if session is still active."""
        return self.state in {SessionState.WAITING, SessionState.ACTIVE}

    def is_full(self) -> bool:
        return len(self.players) >= NUM_PLAYERS

    def seat_for_token(self, token: str | None) -> int | None:
        if not token:
            return None
        for player in self.players:
            if secrets.compare_digest(player.token, token):
                return player.seat
        return None

    def player_name(self, seat: int) -> str | None:
        for player in self.players:
            if player.seat == seat:
                return player.name
        return None

    @property
    def turn_number(self) -> int:
        return len(self.history)


class SessionManager:
    """
    Manages game sessions.

    Responsibilities:
    - Create sessions and seat players
    - Track active sessions
    - Clean up completed sessions

    No persistence - sessions are in-memory only.
    """

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create_session(self, player_name: str = "Player 1", seed: int | None = None) -> tuple[Session, PlayerSeat]:
        """
        Create a new game session and seat its creator.

        Args:
            player_name: Display name for seat 0
            seed: Optional seed for a reproducible deal

        Returns:
            (session, seat) - the session waits for a second player
        """
        session = Session(
            session_id=str(uuid.uuid4()),
            created_at=time.time(),
            seed=seed,
        )
        seat = self._seat(session, player_name)

        with self._lock:
            self._sessions[session.session_id] = session

        logger.info("Session %s created by %s", session.session_id, player_name)
        return session, seat

    def join_session(self, session_id: str, player_name: str = "Player 2") -> tuple[Session, PlayerSeat]:
        """
        Seat the second player and deal.

        Raises SessionError if the session does not exist, is full or has ended.
        """
        session = self.get_session(session_id)
        if not session:
            raise SessionError("SESSION_NOT_FOUND", f"Session {session_id} not found")

        with session.lock:
            if not session.is_active():
                raise SessionError("SESSION_ENDED", f"Session {session_id} has ended")
            if session.is_full():
                raise SessionError("SESSION_FULL", f"Session {session_id} is full")

            seat = self._seat(session, player_name)
            if session.is_full():
                session.game_state = initialize_game(seed=session.seed)
                session.state = SessionState.ACTIVE
                logger.info("Session %s started", session_id)

        return session, seat

    def leave_session(self, session_id: str, seat: int) -> bool:
        """
        A player leaves. Two players are required, so the session ends.
        """
        session = self.get_session(session_id)
        if not session:
            return False
        logger.info("Player %d left session %s", seat, session_id)
        self.end_session(session_id, reason="player_left")
        return True

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def end_session(self, session_id: str, reason: str = "completed"):
        """
        End a session and clean up.

        This is called when:
        - Game is completed
        - A player leaves
        - The game state fails validation

        The session is removed from memory.
        No persistence.
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session:
            if reason == "completed":
                session.state = SessionState.GAME_OVER
            else:
                session.state = SessionState.ABANDONED
            session.ended_at = time.time()
            session.end_reason = reason

            # Clear any state
            session.game_state = None
            session.history.clear()
            logger.info("Session %s ended (%s)", session_id, reason)

    def list_sessions(self) -> list[Session]:
        """All sessions still held in memory."""
        return list(self._sessions.values())

    def list_active_sessions(self) -> list[str]:
        """List IDs of active sessions."""
        return [
            sid for sid, session in self._sessions.items()
            if session.is_active()
        ]

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600):
        """
        Clean up finished sessions older than max_age.

        Called periodically to free memory.
        """
        current_time = time.time()
        to_remove = []

        for session_id, session in list(self._sessions.items()):
            age = current_time - session.created_at
            if age > max_age_seconds and not session.is_active():
                to_remove.append(session_id)

        for session_id in to_remove:
            self.end_session(session_id, reason="stale")
        return len(to_remove)

    def _seat(self, session: Session, player_name: str) -> PlayerSeat:
        seat = PlayerSeat(
            seat=len(session.players),
            name=player_name,
            token=secrets.token_urlsafe(16),
            joined_at=time.time(),
        )
        session.players.append(seat)
        return seat
