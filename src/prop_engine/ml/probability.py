"""Probability mapping strategies.

A strategy turns the gap between a point estimate and the line into the
probability of going over. Every strategy has the signature
``(delta, variance) -> probability`` and must be monotonically increasing in
``delta``; a smaller variance gives a sharper swing per unit of delta.
Clamping to the configured bounds is the scorer's job.
"""

import math
from typing import Callable, Dict, List

from scipy.stats import norm

ProbabilityStrategy = Callable[[float, float], float]

_SQRT_2_OVER_PI = math.sqrt(2 / math.pi)


def tanh_normal(delta: float, variance: float) -> float:
    """Normal CDF approximated with tanh (max error ~2e-4)."""
    z = delta / math.sqrt(variance)
    return 0.5 * (1 + math.tanh(_SQRT_2_OVER_PI * (z + 0.044715 * z ** 3)))


def normal_cdf(delta: float, variance: float) -> float:
    """Exact normal CDF of ``delta`` with standard deviation sqrt(variance)."""
    return float(norm.cdf(delta, loc=0.0, scale=math.sqrt(variance)))


# Registry of available strategies
STRATEGY_REGISTRY: Dict[str, ProbabilityStrategy] = {
    "tanh_normal": tanh_normal,
    "normal_cdf": normal_cdf,
}


def get_strategy(name: str) -> ProbabilityStrategy:
    """
    Get a probability strategy by name.

    Raises:
        ValueError: If strategy name not found
    """
    if name not in STRATEGY_REGISTRY:
        raise ValueError(f"Unknown probability strategy: {name}. Available: {list_strategies()}")
    return STRATEGY_REGISTRY[name]


def list_strategies() -> List[str]:
    """Get list of available strategy names."""
    return list(STRATEGY_REGISTRY.keys())
