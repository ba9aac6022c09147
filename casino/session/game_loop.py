"""
Game Loop - Turn orchestration for one session.

The loop:
1. A client drags a card and asks which actions the drop allows
2. The client submits the chosen move
3. The orchestrator checks the turn, validates the state and the move
4. The handler produces the successor state
5. If the turn ended, round bookkeeping runs (pass-back, re-deal, scoring)
6. The whole state is replaced and broadcast
7. Repeat until the game is over

Submission holds the session lock for the whole sequence.
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TYPE_CHECKING
import logging
import time

from ..engine_core.action import (
    Action,
    ActionDetermination,
    DraggedItem,
    TargetInfo,
    UnknownActionError,
)
from ..engine_core.action_generator import determine_actions, legal_actions
from ..engine_core.reducer import Reducer
from ..engine_core.scoring import advance_round
from ..engine_core.state import GameState, EngineStateError, validate_game_state
from .manager import SessionState

if TYPE_CHECKING:
    from .manager import Session
    from ..bots import BotPolicy


logger = logging.getLogger(__name__)

NOT_YOUR_TURN = "It's not your turn."


class LoopState(Enum):
    """State of the game loop."""
    WAITING_PLAYERS = "waiting_players"
    WAITING_MOVE = "waiting_move"
    GAME_OVER = "game_over"
    ENDED = "ended"


@dataclass
class TurnResult:
    """
    Result of processing a move.

    On success carries the replacement state; on failure an error
    message and a machine-readable code.
    """
    success: bool
    loop_state: LoopState

    game_state: GameState | None = None

    # Human-readable changes
    changes: list[str] = field(default_factory=list)

    error: str | None = None
    error_code: str | None = None

    # Game over info
    winner: int | None = None

    # Player on turn has no determined action
    stuck: bool = False


class GameLoop:
    """
    The turn orchestrator for a session.

    Usage:
        loop = GameLoop(session)

        # While dragging
        determination = loop.determine(dragged_item, target_info)

        # On drop / modal choice
        result = loop.submit_move(move)
        if result.success:
            broadcast(result.game_state)
    """

    def __init__(self, session: Session, reducer: Reducer | None = None):
        self.session = session
        self.reducer = reducer or Reducer()

    @property
    def state(self) -> LoopState:
        session_state = self.session.state
        if session_state is SessionState.WAITING:
            return LoopState.WAITING_PLAYERS
        if session_state is SessionState.GAME_OVER:
            return LoopState.GAME_OVER
        if session_state is SessionState.ABANDONED:
            return LoopState.ENDED
        return LoopState.WAITING_MOVE

    def determine(self, dragged_item: DraggedItem, target_info: TargetInfo | None) -> ActionDetermination:
        """Which actions dropping this card on this target allows right now."""
        game_state = self.session.game_state
        if game_state is None:
            return ActionDetermination(error_message="Game has not started")
        if game_state.game_over:
            return ActionDetermination(error_message="Game is over")
        return determine_actions(dragged_item, target_info, game_state)

    def submit_move(self, move: Action | Mapping[str, Any]) -> TurnResult:
        """
        Apply a submitted move.

        `move` is an Action or its wire form
        {"actionType": ..., "payload": {...}, "playerIndex": n}.

        Raises EngineStateError if the stored state fails validation.
        """
        with self.session.lock:
            game_state = self.session.game_state
            if game_state is None or self.session.state is SessionState.WAITING:
                return self._failure("Game has not started", "GAME_NOT_STARTED")
            if self.session.state is not SessionState.ACTIVE or game_state.game_over:
                return self._failure("Game is over", "GAME_OVER")

            player_index = self._player_index(move)
            if player_index != game_state.current_player:
                logger.info(
                    "Session %s: player %s moved out of turn", self.session.session_id, player_index
                )
                return self._failure(NOT_YOUR_TURN, "NOT_YOUR_TURN")

            try:
                action = move if isinstance(move, Action) else Action.from_dict(dict(move))
            except UnknownActionError as e:
                logger.info("Session %s: %s", self.session.session_id, e)
                return self._failure(str(e), "UNKNOWN_ACTION")
            except (KeyError, TypeError, ValueError) as e:
                logger.info("Session %s: malformed move: %s", self.session.session_id, e)
                return self._failure("Invalid move", "INVALID_MOVE")

            validation = validate_game_state(game_state)
            if not validation.valid:
                logger.error(
                    "Session %s: invalid game state: %s",
                    self.session.session_id,
                    validation.errors,
                )
                raise EngineStateError(validation.errors)

            result = self.reducer.apply(game_state, action)
            if not result.success:
                logger.info(
                    "Session %s: %s rejected (%s)",
                    self.session.session_id,
                    action.action_type.value,
                    result.error_code,
                )
                return self._failure(result.error or "Invalid move", result.error_code or "INVALID_MOVE")

            new_state = result.new_state
            # Staging moves keep the turn; bookkeeping waits for the move that ends it
            if new_state.current_player != game_state.current_player:
                new_state = advance_round(new_state)
            self.session.game_state = new_state
            self.session.history.append({
                "actionType": action.action_type.value,
                "playerIndex": action.player_index,
                "timestamp": action.timestamp or time.time(),
            })

            logger.info(
                "Session %s: player %d played %s",
                self.session.session_id,
                action.player_index,
                action.action_type.value,
            )

            changes = list(result.state_changes)
            if new_state.round != result.new_state.round:
                changes.append(f"Round {new_state.round} dealt")
            if new_state.game_over:
                self.session.state = SessionState.GAME_OVER
                changes.append("Game over")

            stuck = self._is_stuck(new_state)
            if stuck:
                self.session.metadata["stuck_player"] = new_state.current_player
                changes.append(f"Player {new_state.current_player + 1} has no valid actions")
                logger.warning(
                    "Session %s: player %d has no valid actions",
                    self.session.session_id,
                    new_state.current_player,
                )
            else:
                self.session.metadata.pop("stuck_player", None)

            return TurnResult(
                success=True,
                loop_state=self.state,
                game_state=new_state,
                changes=changes,
                winner=new_state.winner,
                stuck=stuck,
            )

    def run_bot_turn(self, policy: BotPolicy) -> TurnResult:
        """
        Let a bot move for the player on turn.

        Candidates the handlers reject are dropped and the bot asked
        again, until one is accepted or none are left.
        """
        with self.session.lock:
            game_state = self.session.game_state
            if game_state is None:
                return self._failure("Game has not started", "GAME_NOT_STARTED")
            candidates = legal_actions(game_state)

        while candidates:
            decision = policy.select_action(game_state, candidates)
            result = self.submit_move(decision.action)
            if result.success or result.error_code not in ("INVALID_MOVE", "NO_VALID_ACTIONS"):
                return result
            logger.debug("Bot candidate rejected: %s", decision.candidate.label)
            candidates = [c for c in candidates if c is not decision.candidate]

        return self._failure("No playable action", "NO_VALID_ACTIONS")

    def _is_stuck(self, game_state: GameState) -> bool:
        """
        True when no determined action for the player on turn is accepted.

        Happens in round 1 when a player owns a build they can no longer
        capture: trailing is locked until the build is resolved.
        """
        player = game_state.current_player
        if game_state.game_over or game_state.staging_stack_for(player):
            return False
        return not any(
            self.reducer.apply(game_state, candidate.to_action(player)).success
            for candidate in legal_actions(game_state)
        )

    def _player_index(self, move: Action | Mapping[str, Any]) -> int | None:
        if isinstance(move, Action):
            return move.player_index
        try:
            return int(move.get("playerIndex"))
        except (TypeError, ValueError):
            return None

    def _failure(self, error: str, error_code: str) -> TurnResult:
        return TurnResult(
            success=False,
            loop_state=self.state,
            game_state=self.session.game_state,
            error=error,
            error_code=error_code,
        )
