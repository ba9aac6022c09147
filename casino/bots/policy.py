"""
Bot Policy - Interface for bot decision-making.

A BotPolicy takes a game state and the candidate actions from
legal_actions() and returns a decision. Candidates come straight from
determination; a handler may still reject one (e.g. a build extension
over 10), so callers should be ready to try another.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import random
from typing import TYPE_CHECKING, Any

from ..engine_core.reducer import apply_action
from ..engine_core.scoring import advance_round
from .evaluator import HeuristicEvaluator, EvaluationWeights

if TYPE_CHECKING:
    from ..engine_core.state import GameState
    from ..engine_core.action import Action, CandidateAction


@dataclass
class BotDecision:
    """
    A decision made by a bot.

    Contains:
    - The candidate picked and the action to submit
    - Explanation (for UI/debugging)
    - Confidence in the decision
    """
    candidate: CandidateAction
    action: Action
    explanation: str = ""
    confidence: float = 1.0

    # Evaluation details (for debugging)
    evaluated_actions: int = 0
    best_score: float = 0.0
    evaluation_details: dict[str, Any] = field(default_factory=dict)


class BotPolicy(ABC):
    """
    Abstract base class for bot policies.

    A policy defines how a bot selects actions.
    """

    @abstractmethod
    def select_action(
        self,
        state: GameState,
        legal_actions: list[CandidateAction],
    ) -> BotDecision:
        """
        Select an action from the legal actions.

        Args:
            state: Current game state
            legal_actions: Candidates to choose from

        Returns:
            BotDecision with the selected action
        """
        pass

    def get_name(self) -> str:
        """Get the bot's name/identifier."""
        return self.__class__.__name__


class RandomPolicy(BotPolicy):
    """
    Random policy - selects actions uniformly at random.

    Used for:
    - Testing
    - Baseline comparison
    """

    def __init__(self, seed: int | None = None):
        self.rng = random.Random(seed)

    def select_action(
        self,
        state: GameState,
        legal_actions: list[CandidateAction],
    ) -> BotDecision:
        if not legal_actions:
            raise ValueError("No legal actions available")

        candidate = self.rng.choice(legal_actions)
        return BotDecision(
            candidate=candidate,
            action=candidate.to_action(state.current_player),
            explanation="Selected randomly",
            confidence=1.0 / len(legal_actions),
            evaluated_actions=len(legal_actions),
        )


class FirstLegalPolicy(BotPolicy):
    """
    First-legal policy - always selects the first legal action.

    Used for:
    - Deterministic testing
    - Baseline comparison
    """

    def select_action(
        self,
        state: GameState,
        legal_actions: list[CandidateAction],
    ) -> BotDecision:
        if not legal_actions:
            raise ValueError("No legal actions available")

        candidate = legal_actions[0]
        return BotDecision(
            candidate=candidate,
            action=candidate.to_action(state.current_player),
            explanation="Selected first legal action",
            evaluated_actions=1,
        )


class GreedyPolicy(BotPolicy):
    """
    One-ply lookahead: apply every candidate and keep the best-scoring state.

    Candidates the handlers reject are skipped. Ties go to the earlier
    candidate, so the policy is deterministic.
    """

    def __init__(self, weights: EvaluationWeights | None = None):
        self.evaluator = HeuristicEvaluator(weights)

    def select_action(
        self,
        state: GameState,
        legal_actions: list[CandidateAction],
    ) -> BotDecision:
        if not legal_actions:
            raise ValueError("No legal actions available")

        player = state.current_player
        best: CandidateAction | None = None
        best_score = float("-inf")
        scores: dict[str, float] = {}

        for candidate in legal_actions:
            result = apply_action(state, candidate.to_action(player))
            if not result.success:
                continue
            evaluation = self.evaluator.evaluate(advance_round(result.new_state), player)
            scores[candidate.label] = evaluation.total_score
            if evaluation.total_score > best_score:
                best, best_score = candidate, evaluation.total_score

        if best is None:
            best = legal_actions[0]
            best_score = 0.0

        return BotDecision(
            candidate=best,
            action=best.to_action(player),
            explanation=f"Best of {len(scores)} playable actions: {best.label}",
            evaluated_actions=len(legal_actions),
            best_score=best_score,
            evaluation_details=scores,
        )
