"""
Bots module - Computer players.

Provides:
- BotPolicy: Interface for bot decision-making
- RandomPolicy / FirstLegalPolicy: Baselines
- GreedyPolicy: One-ply lookahead over HeuristicEvaluator
"""

from .policy import BotPolicy, BotDecision, RandomPolicy, FirstLegalPolicy, GreedyPolicy
from .evaluator import HeuristicEvaluator, EvaluationWeights, StateEvaluation

__all__ = [
    "BotPolicy",
    "BotDecision",
    "RandomPolicy",
    "FirstLegalPolicy",
    "GreedyPolicy",
    "HeuristicEvaluator",
    "EvaluationWeights",
    "StateEvaluation",
]
