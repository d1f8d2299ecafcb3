"""
frequency_analyzer.py
----------------------
Infers a payment cadence from a group's dates.

Logic:
    1. Compute consecutive day gaps between sorted dates.
    2. Classify the mean gap into the first configured band whose
       [min_gap_days, max_gap_days] window contains it.
    3. Base confidence is the band's tight confidence when the gap stddev is
       under the band's threshold, its loose confidence otherwise.
    4. Boost for repeated observations (+5 at 3, +5 more at 6), capped at 100.

Fewer than two dates cannot imply a cadence; the group gets the low
single-occurrence baseline so it can still surface as a one-time payment.
A mean gap outside every band yields UNKNOWN with a base of 0.
"""

from datetime import date
from typing import Any, Dict, List

import numpy as np

from config.config_loader import get_frequency_analysis_config
from core.models import Frequency, FrequencyResult


def apply_occurrence_boosts(confidence: float, occurrences: int, boosts: List[Dict[str, Any]]) -> float:
    """Adds every boost whose min_occurrences is met, capped at 100."""
    for boost in boosts:
        if occurrences >= boost["min_occurrences"]:
            confidence += boost["boost"]
    return min(confidence, 100.0)


class FrequencyAnalyzer:
    """
    Classifies a sequence of dates into a frequency band.

    Usage:
        analyzer = FrequencyAnalyzer()
        result = analyzer.analyze(group.dates)
    """

    def __init__(self, config: Dict[str, Any] | None = None):
        self.config = config if config is not None else get_frequency_analysis_config()
        self.bands = self.config["bands"]
        self.occurrence_boosts = self.config.get("occurrence_boosts", [])
        self.single_occurrence_confidence = self.config["single_occurrence_confidence"]

    def analyze(self, dates: List[date]) -> FrequencyResult:
        if len(dates) < 2:
            return FrequencyResult(
                frequency=Frequency.UNKNOWN,
                base_confidence=float(self.single_occurrence_confidence),
            )

        ordinals = np.array(sorted(d.toordinal() for d in dates))
        gaps = np.diff(ordinals)
        mean_gap = float(np.mean(gaps))
        gap_std = float(np.std(gaps))

        frequency, confidence = self._classify(mean_gap, gap_std)
        if frequency != Frequency.UNKNOWN:
            confidence = apply_occurrence_boosts(confidence, len(dates), self.occurrence_boosts)

        return FrequencyResult(
            frequency=frequency,
            base_confidence=confidence,
            mean_gap_days=round(mean_gap, 2),
            gap_std_days=round(gap_std, 2),
            gaps=[int(g) for g in gaps],
        )

    def _classify(self, mean_gap: float, gap_std: float) -> tuple[Frequency, float]:
        for band in self.bands:
            if band["min_gap_days"] <= mean_gap <= band["max_gap_days"]:
                tight = gap_std < band["tight_stddev"]
                confidence = band["tight_confidence"] if tight else band["loose_confidence"]
                return Frequency(band["frequency"]), float(confidence)
        return Frequency.UNKNOWN, 0.0
