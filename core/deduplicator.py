"""
deduplicator.py
----------------
Final assembly stage: merge optional enrichment hints, drop patterns the
caller already tracks, and rank what is left.

Enrichment hints arrive already resolved (the caller awaited whatever
external classifier produced them). Local detection stays the source of
truth: a bad or missing hint never removes or breaks a pattern.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List

from config.config_loader import get_deduplication_config, get_enrichment_config, get_confidence_scoring_config
from core.models import DetectedPattern, EnrichmentHint, ExistingRecord

logger = logging.getLogger(__name__)


def amounts_match(a: float, b: float, tolerance: float) -> bool:
    """True when a is within tolerance (a fraction) of the reference amount b."""
    return abs(a - b) <= b * tolerance


class Deduplicator:
    """
    Usage:
        dedup = Deduplicator()
        patterns = dedup.merge_enrichment(patterns, hints)
        patterns = dedup.filter_existing(patterns, existing_records)
        patterns = dedup.rank(patterns)
    """

    def __init__(
        self,
        config: Dict[str, Any] | None = None,
        enrichment_config: Dict[str, Any] | None = None,
        recurring_threshold: float | None = None,
    ):
        self.config = config if config is not None else get_deduplication_config()
        self.enrichment_config = enrichment_config if enrichment_config is not None else get_enrichment_config()
        self.amount_tolerance = self.config["amount_tolerance"]
        self.enrichment_tolerance = self.enrichment_config["amount_tolerance"]
        if recurring_threshold is None:
            recurring_threshold = get_confidence_scoring_config()["recurring_threshold"]
        self.recurring_threshold = recurring_threshold

    # -------------------------------------------------------------------------
    # DEDUPLICATION
    # -------------------------------------------------------------------------

    def filter_existing(self, patterns: List[DetectedPattern], existing: Iterable[Any] | None) -> List[DetectedPattern]:
        """
        Drops every pattern for which some existing record has an amount
        within tolerance and the identical frequency.
        """
        records = [r for r in (ExistingRecord.from_record(e) for e in existing or []) if r is not None]
        if not records:
            return list(patterns)

        kept = []
        for pattern in patterns:
            duplicate = next(
                (
                    r for r in records
                    if r.frequency == pattern.frequency
                    and amounts_match(r.amount, pattern.representative_amount, self.amount_tolerance)
                ),
                None,
            )
            if duplicate is not None:
                logger.debug(
                    f"Suppressing '{pattern.name}' (${pattern.representative_amount:,.2f} "
                    f"{pattern.frequency.value}): already tracked."
                )
                continue
            kept.append(pattern)
        return kept

    # -------------------------------------------------------------------------
    # ENRICHMENT
    # -------------------------------------------------------------------------

    def merge_enrichment(self, patterns: List[DetectedPattern], hints: Iterable[Any] | None) -> List[DetectedPattern]:
        """
        Overlays name / category / confidence from the first matching hint.

        A hint matches when its amount is within tolerance of the pattern's
        and its frequency is either absent or equal. Any failure falls back
        to the local patterns unchanged, including a hints value that is not
        iterable at all.
        """
        if hints is None:
            return list(patterns)

        try:
            parsed = []
            for hint in hints:
                h = EnrichmentHint.from_record(hint)
                if h is None:
                    logger.debug(f"Skipping malformed enrichment hint: {hint!r}")
                    continue
                parsed.append(h)
            if not parsed:
                return list(patterns)
            return [self._apply_hint(p, parsed) for p in patterns]
        except Exception:
            logger.warning("Enrichment merge failed; using local detection only.", exc_info=True)
            return list(patterns)

    def _apply_hint(self, pattern: DetectedPattern, hints: List[EnrichmentHint]) -> DetectedPattern:
        match = next(
            (
                h for h in hints
                if amounts_match(h.amount, pattern.representative_amount, self.enrichment_tolerance)
                and (h.frequency is None or h.frequency == pattern.frequency)
            ),
            None,
        )
        if match is None:
            return pattern

        updates: Dict[str, Any] = {}
        if match.name:
            updates["name"] = match.name
        if match.category:
            updates["categories"] = [match.category]
        if match.confidence is not None:
            confidence = int(round(min(max(match.confidence, 0.0), 100.0)))
            updates["confidence"] = confidence
            updates["is_recurring"] = pattern.frequency.is_cadence and confidence > self.recurring_threshold
        return replace(pattern, **updates)

    # -------------------------------------------------------------------------
    # RANKING
    # -------------------------------------------------------------------------

    @staticmethod
    def rank(patterns: List[DetectedPattern]) -> List[DetectedPattern]:
        """Recurring first, then by confidence. Stable for ties."""
        return sorted(patterns, key=lambda p: (not p.is_recurring, -p.confidence))
