"""
Engine Core - Deterministic casino rules: state, determination, handlers.

The engine is the runtime that:
1. Builds, shuffles and deals the deck
2. Describes GameState and its table items
3. Determines legal actions for a card drop
4. Applies moves via the reducer
5. Re-deals and scores when hands run out
"""

from .cards import Card, build_deck, shuffle, deal, rank_value
from .state import (
    GameState,
    LooseCard,
    TemporaryStack,
    Build,
    EngineStateError,
    ValidationResult,
    initialize_game,
    validate_game_state,
    card_integrity_errors,
)
from .action import (
    Action,
    ActionType,
    ActionPayload,
    ActionResult,
    ActionDetermination,
    CandidateAction,
    DraggedItem,
    TargetInfo,
    TargetType,
    UnknownActionError,
)
from .reducer import Reducer, apply_action
from .action_generator import determine_actions, legal_actions, validate_hand_move
from .scoring import advance_round, calculate_scores

__all__ = [
    "Card",
    "build_deck",
    "shuffle",
    "deal",
    "rank_value",
    "GameState",
    "LooseCard",
    "TemporaryStack",
    "Build",
    "EngineStateError",
    "ValidationResult",
    "initialize_game",
    "validate_game_state",
    "card_integrity_errors",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "ActionDetermination",
    "CandidateAction",
    "DraggedItem",
    "TargetInfo",
    "TargetType",
    "UnknownActionError",
    "Reducer",
    "apply_action",
    "determine_actions",
    "legal_actions",
    "validate_hand_move",
    "advance_round",
    "calculate_scores",
]
