"""
Weighted category selection for Farsi Hub.
"""
import random
from typing import Callable, Dict, Mapping, Optional

from farsihub.core.article import Category, DEFAULT_CATEGORY
from farsihub.errors import ConfigurationError


def build_weights(raw: Mapping) -> Dict[Category, float]:
    """
    Build a weight table from configuration.

    Args:
        raw: Mapping of category name or label to weight

    Returns:
        Dict with an entry for every category, in enum order

    Raises:
        ConfigurationError: If a key is unknown, a weight is negative, or no
            weight is positive
    """
    parsed = {}
    for key, value in raw.items():
        try:
            parsed[Category.parse(key)] = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid category weight {key!r}: {value!r}") from e

    weights = {category: parsed.get(category, 0.0) for category in Category}
    if any(weight < 0 for weight in weights.values()):
        raise ConfigurationError("Category weights must be non-negative")
    if not any(weight > 0 for weight in weights.values()):
        raise ConfigurationError("At least one category weight must be positive")
    return weights


class CategorySelector:
    """
    Picks a category with probability proportional to its weight.
    """
    def __init__(self, weights: Mapping, default: Category = DEFAULT_CATEGORY,
                 random_source: Optional[Callable[[], float]] = None):
        """
        Initialize the CategorySelector.

        Args:
            weights: Category weights; see build_weights
            default: Returned when the draw falls past the cumulative sum
            random_source: Callable returning a float in [0, 1)
        """
        self.weights = build_weights(weights)
        self.default = default
        self.random_source = random_source or random.random

    def pick(self) -> Category:
        r = self.random_source()
        cumulative = 0.0
        for category, weight in self.weights.items():
            cumulative += weight
            if r < cumulative:
                return category
        # Weights summing below 1 leave a gap at the top of the range
        return self.default
