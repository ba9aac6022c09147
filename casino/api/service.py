"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to session and engine calls
2. Manages sessions and their game loops
3. Checks player tokens
4. Formats responses for clients

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging

from .schemas import (
    # Requests
    CreateSessionRequest,
    JoinSessionRequest,
    LeaveSessionRequest,
    DetermineRequest,
    MoveRequest,
    # Responses
    SeatResponse,
    SessionResponse,
    GameStateResponse,
    DetermineResponse,
    MoveResponse,
    EndSessionResponse,
    ErrorResponse,
    # Shared
    PlayerInfo,
    CandidateActionInfo,
    # Enums
    SessionStatus,
    ErrorCode,
)
from ..engine_core.action import DraggedItem, TargetInfo
from ..engine_core.state import EngineStateError
from ..session import SessionManager, Session, SessionState, SessionError, GameLoop


logger = logging.getLogger(__name__)


@dataclass
class APIService:
    """
    Main API service for game clients.

    Usage:
        service = APIService()

        # Open a table and take seat 0
        seat = service.create_session(CreateSessionRequest(player_name="Ann"))

        # Second player joins, game starts
        service.join_session(seat.session_id, JoinSessionRequest(player_name="Bo"))

        # Play
        response = service.submit_move(seat.session_id, move_request)
    """
    session_manager: SessionManager = field(default_factory=SessionManager)

    # Game loops per session
    _game_loops: dict[str, GameLoop] = field(default_factory=dict)

    def create_session(self, request: CreateSessionRequest) -> SeatResponse:
        """
        Create a new game session, seating the requester at seat 0.
        """
        session, seat = self.session_manager.create_session(
            player_name=request.player_name,
            seed=request.random_seed,
        )
        self._game_loops[session.session_id] = GameLoop(session)

        return SeatResponse(
            session_id=session.session_id,
            seat=seat.seat,
            player_token=seat.token,
            status=self._session_state_to_status(session),
        )

    def join_session(self, session_id: str, request: JoinSessionRequest) -> SeatResponse | ErrorResponse:
        """
        Take seat 1. The deal happens as soon as both seats are filled.
        """
        try:
            session, seat = self.session_manager.join_session(session_id, request.player_name)
        except SessionError as e:
            return ErrorResponse(error=e.message, error_code=ErrorCode(e.code))

        self._game_loops.setdefault(session_id, GameLoop(session))
        return SeatResponse(
            session_id=session_id,
            seat=seat.seat,
            player_token=seat.token,
            status=self._session_state_to_status(session),
        )

    def get_session(self, session_id: str) -> SessionResponse | ErrorResponse:
        """
        Get session status.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        return self._session_to_response(session)

    def leave_session(self, session_id: str, request: LeaveSessionRequest) -> EndSessionResponse | ErrorResponse:
        """
        A seated player leaves; the session ends.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)

        seat = session.seat_for_token(request.player_token)
        if seat is None:
            return ErrorResponse(error="Invalid player token", error_code=ErrorCode.INVALID_TOKEN)

        self.session_manager.leave_session(session_id, seat)
        self._game_loops.pop(session_id, None)
        return EndSessionResponse(success=True, session_id=session_id)

    def get_game_state(self, session_id: str) -> GameStateResponse | ErrorResponse:
        """
        Get current game state.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)

        return GameStateResponse(
            session_id=session_id,
            status=self._session_state_to_status(session),
            turn_number=session.turn_number,
            game_state=session.game_state.to_dict() if session.game_state else None,
        )

    def determine(self, session_id: str, request: DetermineRequest) -> DetermineResponse | ErrorResponse:
        """
        Determine which actions a card drop allows.
        """
        game_loop = self._game_loops.get(session_id)
        if not game_loop or not self.session_manager.get_session(session_id):
            return self._not_found(session_id)

        try:
            dragged = DraggedItem.from_dict(request.dragged_item.model_dump(exclude_none=True))
            target = (
                TargetInfo.from_dict(
                    request.target_info.model_dump(by_alias=True, exclude_none=True, mode="json")
                )
                if request.target_info else None
            )
        except (KeyError, TypeError, ValueError) as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.VALIDATION_ERROR)

        result = game_loop.determine(dragged, target)
        return DetermineResponse(
            actions=[CandidateActionInfo(**candidate.to_dict()) for candidate in result.actions],
            requires_modal=result.requires_modal,
            error_message=result.error_message,
        )

    def submit_move(self, session_id: str, request: MoveRequest) -> MoveResponse | ErrorResponse:
        """
        Submit a move for the player holding `player_token`.

        A broken game state ends the session; other sessions are unaffected.
        """
        session = self.session_manager.get_session(session_id)
        game_loop = self._game_loops.get(session_id)
        if not session or not game_loop:
            return self._not_found(session_id)

        if session.seat_for_token(request.player_token) != request.player_index:
            return ErrorResponse(error="Invalid player token", error_code=ErrorCode.INVALID_TOKEN)

        move = {
            "actionType": request.action_type,
            "payload": request.payload,
            "playerIndex": request.player_index,
        }
        try:
            result = game_loop.submit_move(move)
        except EngineStateError as e:
            logger.error("Session %s abandoned: %s", session_id, e)
            self.end_session(session_id, reason="engine_error")
            return ErrorResponse(
                error="Game state is invalid; session ended",
                error_code=ErrorCode.ENGINE_ERROR,
                details={"errors": e.errors},
            )

        if not result.success:
            return ErrorResponse(
                error=result.error or "Invalid move",
                error_code=self._error_code(result.error_code),
            )

        return MoveResponse(
            session_id=session_id,
            success=True,
            status=self._session_state_to_status(session),
            changes=result.changes,
            game_state=result.game_state.to_dict() if result.game_state else None,
            winner=result.winner,
            stuck_player=result.game_state.current_player if result.stuck else None,
        )

    def end_session(self, session_id: str, reason: str = "user_ended") -> bool:
        """
        End a game session.
        """
        self.session_manager.end_session(session_id, reason)
        self._game_loops.pop(session_id, None)
        return True

    def list_sessions(self) -> list[str]:
        """
        List active session IDs.
        """
        return self.session_manager.list_active_sessions()

    def cleanup(self, max_age_seconds: int) -> int:
        """Drop finished sessions older than max_age_seconds."""
        removed = self.session_manager.cleanup_stale_sessions(max_age_seconds)
        live = {s.session_id for s in self.session_manager.list_sessions()}
        for session_id in list(self._game_loops):
            if session_id not in live:
                self._game_loops.pop(session_id, None)
        return removed

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _not_found(self, session_id: str) -> ErrorResponse:
        return ErrorResponse(
            error=f"Session {session_id} not found",
            error_code=ErrorCode.SESSION_NOT_FOUND,
        )

    def _error_code(self, code: str | None) -> ErrorCode:
        try:
            return ErrorCode(code)
        except ValueError:
            return ErrorCode.INVALID_MOVE

    def _session_to_response(self, session: Session) -> SessionResponse:
        """Convert Session to SessionResponse."""
        game_state = session.game_state
        players = []
        for seat in session.players:
            players.append(
                PlayerInfo(
                    seat=seat.seat,
                    name=seat.name,
                    is_current_turn=bool(game_state and game_state.current_player == seat.seat),
                    hand_count=len(game_state.player_hands[seat.seat]) if game_state else 0,
                    capture_count=(
                        sum(len(group) for group in game_state.player_captures[seat.seat])
                        if game_state else 0
                    ),
                    score=game_state.scores[seat.seat] if game_state else 0,
                )
            )

        return SessionResponse(
            session_id=session.session_id,
            status=self._session_state_to_status(session),
            players=players,
            current_player=game_state.current_player if game_state else None,
            round=game_state.round if game_state else 0,
            turn_number=session.turn_number,
            stuck_player=session.metadata.get("stuck_player"),
            created_at=session.created_at,
        )

    def _session_state_to_status(self, session: Session) -> SessionStatus:
        """Convert session state to API status."""
        mapping = {
            SessionState.WAITING: SessionStatus.WAITING,
            SessionState.ACTIVE: SessionStatus.ACTIVE,
            SessionState.GAME_OVER: SessionStatus.GAME_OVER,
            SessionState.ABANDONED: SessionStatus.ABANDONED,
        }
        return mapping.get(session.state, SessionStatus.ACTIVE)
