"""
strategies.py
--------------
Concrete grouping strategies. One class per clustering approach.

    - NameSimilarityStrategy ("name"): clusters by normalized description.
      Suited to merchants and payees whose amounts drift (utilities, card
      payments).
    - AmountToleranceStrategy ("amount"): clusters by amount alone. Suited
      to income, where the same employer can appear under several
      descriptions but the deposit barely moves.

Thresholds come from the grouping block of config.yaml.
"""

from typing import Any, Dict

from rapidfuzz.distance import Levenshtein

from config.config_loader import get_grouping_config
from core.models import CandidateGroup, RawTransaction
from core.name_normalizer import NameNormalizer
from grouping.base_strategy import BaseGroupingStrategy


def name_similarity(a: str, b: str) -> float:
    """1 − edit distance / length of the longer string. 1.0 for identical strings."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


# =============================================================================
# NAME SIMILARITY
# =============================================================================
class NameSimilarityStrategy(BaseGroupingStrategy):
    """
    Joins a transaction to the first group whose key:
        - is identical,
        - contains or is contained in it (both at least 5 characters),
        - shares a prefix with it (shorter key at least 4 characters), or
        - is more than 80% similar by edit distance (shorter key at least
          6 characters, so short codes don't fuzzy-match each other).
    Keys that fail NameNormalizer.is_clusterable() are skipped entirely.
    """

    name = "name"

    def __init__(self, normalizer: NameNormalizer | None = None, config: Dict[str, Any] | None = None):
        super().__init__(normalizer)
        cfg = config if config is not None else get_grouping_config()["name"]
        self.substring_min_length = cfg["substring_min_length"]
        self.prefix_min_length = cfg["prefix_min_length"]
        self.similarity_threshold = cfg["similarity_threshold"]
        self.similarity_min_length = cfg["similarity_min_length"]

    def _key_for(self, txn: RawTransaction, name: str) -> str | None:
        return name if self.normalizer.is_clusterable(name) else None

    def _matches(self, group: CandidateGroup, key: str, txn: RawTransaction) -> bool:
        return self.keys_match(group.key, key)

    def keys_match(self, a: str, b: str) -> bool:
        if a == b:
            return True

        shorter, longer = sorted((a, b), key=len)

        if len(shorter) >= self.substring_min_length and shorter in longer:
            return True
        if len(shorter) >= self.prefix_min_length and longer.startswith(shorter):
            return True
        if len(shorter) >= self.similarity_min_length:
            return name_similarity(a, b) > self.similarity_threshold
        return False


# =============================================================================
# AMOUNT TOLERANCE
# =============================================================================
class AmountToleranceStrategy(BaseGroupingStrategy):
    """
    Joins a transaction to the first bucket whose seed amount is within
    ±tolerance (5% by default) of the transaction's absolute amount.

    Unlike the name strategy, this one does not consult
    NameNormalizer.is_clusterable(): transactions whose description is
    generic ("PAYMENT", "DEPOSIT") or too short still join amount buckets,
    since deposits frequently arrive under exactly such descriptions. The
    normalized names are only used afterwards to label the bucket.
    """

    name = "amount"

    def __init__(self, normalizer: NameNormalizer | None = None, config: Dict[str, Any] | None = None):
        super().__init__(normalizer)
        cfg = config if config is not None else get_grouping_config()["amount"]
        self.tolerance = cfg["tolerance"]

    def _key_for(self, txn: RawTransaction, name: str) -> float:
        return txn.abs_amount

    def _matches(self, group: CandidateGroup, key: float, txn: RawTransaction) -> bool:
        return abs(key - group.key) <= group.key * self.tolerance


# =============================================================================
# STRATEGY REGISTRY
# =============================================================================
# To add a clustering approach: create the class above, add it here.

STRATEGY_REGISTRY: dict[str, type[BaseGroupingStrategy]] = {
    NameSimilarityStrategy.name: NameSimilarityStrategy,
    AmountToleranceStrategy.name: AmountToleranceStrategy,
}


def get_grouping_strategy(name: str, normalizer: NameNormalizer | None = None) -> BaseGroupingStrategy:
    """
    Instantiates the strategy registered under name.

    Raises:
        ValueError: If no strategy is registered under that name.
    """
    if name not in STRATEGY_REGISTRY:
        raise ValueError(
            f"Unknown cluster strategy '{name}'. "
            f"Available: {list(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[name](normalizer=normalizer)
