"""
confidence_scorer.py
---------------------
Combines the frequency analyzer's base confidence with amount consistency
and occurrence count into a single 0–100 score, then decides whether the
group is recurring, a possible one-time payment, or noise to be dropped.
"""

from typing import Any, Dict, List

import numpy as np

from config.config_loader import get_confidence_scoring_config
from core.frequency_analyzer import apply_occurrence_boosts
from core.models import ConfidenceResult, FrequencyResult


class ConfidenceScorer:
    """
    Usage:
        scorer = ConfidenceScorer()
        result = scorer.score(group.amounts, frequency_result)
        if result.keep:
            ...
    """

    def __init__(self, config: Dict[str, Any] | None = None):
        self.config = config if config is not None else get_confidence_scoring_config()
        self.amount_consistency_ratio = self.config["amount_consistency_ratio"]
        self.amount_consistency_boost = self.config["amount_consistency_boost"]
        self.occurrence_boosts = self.config.get("occurrence_boosts", [])
        self.recurring_threshold = self.config["recurring_threshold"]
        self.retention_floor = self.config["retention_floor"]

    def score(self, amounts: List[float], frequency_result: FrequencyResult) -> ConfidenceResult:
        occurrences = len(amounts)

        if occurrences < 2:
            # Nothing to compare against: the analyzer's baseline stands.
            confidence = self._clamp(frequency_result.base_confidence)
            return ConfidenceResult(
                confidence=confidence,
                is_recurring=False,
                keep=confidence > self.retention_floor,
            )

        confidence = frequency_result.base_confidence
        if self.is_amount_consistent(amounts):
            confidence += self.amount_consistency_boost
        confidence = apply_occurrence_boosts(confidence, occurrences, self.occurrence_boosts)
        confidence = self._clamp(confidence)

        is_recurring = frequency_result.frequency.is_cadence and confidence > self.recurring_threshold
        return ConfidenceResult(
            confidence=confidence,
            is_recurring=is_recurring,
            keep=is_recurring or confidence > self.retention_floor,
        )

    def is_amount_consistent(self, amounts: List[float]) -> bool:
        """Population stddev below ratio × mean (10% by default)."""
        values = np.asarray(amounts, dtype=float)
        mean = float(np.mean(values))
        if mean <= 0:
            return False
        return float(np.std(values)) < mean * self.amount_consistency_ratio

    @staticmethod
    def _clamp(confidence: float) -> int:
        return int(round(min(max(confidence, 0.0), 100.0)))
