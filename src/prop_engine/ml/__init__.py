"""
Prop scoring module.

Combines rolling player averages with market prices into predicted
probabilities, value (edge) per side and a confidence score.
"""
from .probability import (
    STRATEGY_REGISTRY,
    ProbabilityStrategy,
    get_strategy,
    list_strategies,
    normal_cdf,
    tanh_normal,
)
from .scorer import PredictionScorer, ScoredPrediction

__all__ = [
    'PredictionScorer',
    'ScoredPrediction',
    # Probability strategies
    'ProbabilityStrategy',
    'STRATEGY_REGISTRY',
    'get_strategy',
    'list_strategies',
    'normal_cdf',
    'tanh_normal',
]
