"""
Heuristic Evaluator - Scores game states for bot decision-making.

The evaluator assigns a numeric score to game states based on:
- Capture features (cards, spades, casinos, aces taken)
- Table features (owning a build, leaving sweeps for the opponent)
- Threat features (opponent captures)

Weights can be adjusted to create different play styles.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..engine_core.scoring import captured_cards, BIG_CASINO, LITTLE_CASINO
from ..engine_core.state import Build

if TYPE_CHECKING:
    from ..engine_core.state import GameState


@dataclass
class EvaluationWeights:
    """
    Weights for the heuristic evaluator.

    Higher values = more importance.
    """
    # Scoring points already earned
    score_per_point: float = 10.0

    # Captures
    captured_card: float = 1.0
    captured_spade: float = 0.5
    big_casino: float = 6.0
    little_casino: float = 3.0
    ace: float = 3.0

    # Table
    owned_build: float = 2.0
    loose_card_left: float = -0.2

    # Opponent-related
    opponent_penalty: float = -1.0  # Multiply opponent's score by this


@dataclass
class StateEvaluation:
    """
    Result of evaluating a game state.
    """
    total_score: float
    player_scores: dict[int, float] = field(default_factory=dict)
    feature_breakdown: dict[str, float] = field(default_factory=dict)


class HeuristicEvaluator:
    """
    Evaluates game states using weighted heuristics.

    Used by bots for 1-ply lookahead:
    1. Generate legal actions
    2. Apply each action to get new state
    3. Evaluate new states
    4. Select action leading to best state
    """

    def __init__(self, weights: EvaluationWeights | None = None):
        self.weights = weights or EvaluationWeights()

    def evaluate(self, state: GameState, for_player: int) -> StateEvaluation:
        """
        Evaluate a game state from a player's perspective.

        Returns positive score if state is good for player,
        negative if bad.
        """
        player_scores = {p: self._evaluate_player(state, p) for p in (0, 1)}

        my_score = player_scores[for_player]
        relative_score = my_score + self.weights.opponent_penalty * player_scores[1 - for_player]

        features = {"relative_score": relative_score}

        loose = sum(1 for item in state.table_cards if not isinstance(item, Build))
        features["table_items"] = loose * self.weights.loose_card_left
        relative_score += features["table_items"]

        if state.game_over:
            if state.winner == for_player:
                relative_score += 1000
            elif state.winner is not None:
                relative_score -= 1000

        return StateEvaluation(
            total_score=relative_score,
            player_scores=player_scores,
            feature_breakdown=features,
        )

    def _evaluate_player(self, state: GameState, player: int) -> float:
        w = self.weights
        pile = captured_cards(state, player)

        score = state.scores[player] * w.score_per_point
        score += len(pile) * w.captured_card
        score += sum(1 for c in pile if c.suit == "♠") * w.captured_spade
        score += sum(1 for c in pile if c.rank == "A") * w.ace
        if any((c.suit, c.rank) == BIG_CASINO for c in pile):
            score += w.big_casino
        if any((c.suit, c.rank) == LITTLE_CASINO for c in pile):
            score += w.little_casino

        if any(isinstance(item, Build) and item.owner == player for item in state.table_cards):
            score += w.owned_build
        return score
