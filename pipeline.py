"""
pipeline.py
------------
Main orchestration layer. Wires together:
    1. Input preparation      →  validated, chronologically ordered RawTransactions
    2. Grouping strategy      →  CandidateGroups ("name" or "amount")
    3. Per-group analysis     →  frequency, confidence, categories → DetectedPattern
    4. Assembly               →  enrichment merge, dedup against existing records, ranking

This is the single entry point for running the engine. Everything else
is internal machinery. A run is a pure, synchronous transformation: no I/O,
no state carried between calls, so independent batches can be processed
concurrently with separate pipeline instances or the same one.

Usage:
    from pipeline import PatternDetectionPipeline, detect_patterns

    patterns = detect_patterns(transactions, existing=bills, options={"cluster_strategy": "name"})

    pipeline = PatternDetectionPipeline()
    patterns_df = pipeline.to_frame(pipeline.run(transactions))
"""

import logging
from collections import Counter
from datetime import timedelta
from typing import Any, Iterable, List, Mapping

import numpy as np
import pandas as pd

from config.config_loader import get_grouping_config, get_input_config, load_config
from core.categorizer import Categorizer
from core.confidence_scorer import ConfidenceScorer
from core.deduplicator import Deduplicator
from core.frequency_analyzer import FrequencyAnalyzer
from core.models import (
    CandidateGroup,
    DetectedPattern,
    DetectionOptions,
    Direction,
    Frequency,
    RawTransaction,
)
from core.name_normalizer import NameNormalizer
from grouping.strategies import get_grouping_strategy

logger = logging.getLogger(__name__)

OUTPUT_COLUMNS = [
    "name", "representative_amount", "frequency", "confidence", "is_recurring",
    "categories", "occurrence_count", "first_seen", "last_seen", "direction",
    "mean_gap_days", "amount_std", "source_transaction_ids",
]


class PatternDetectionPipeline:
    """
    End-to-end pattern detection pipeline.

    Orchestrates normalize → group → analyze → score → categorize → dedup →
    rank without exposing intermediate objects to callers.
    """

    def __init__(self, categorizer: Categorizer | None = None):
        """
        Args:
            categorizer: Override the config-driven categorizer, e.g. with a
                per-deployment rule table.
        """
        self.config = load_config()
        self.input_config = get_input_config()
        self.naming_config = get_grouping_config()["amount"]
        self.default_strategy = get_grouping_config().get("default_strategy", "name")

        self.normalizer = NameNormalizer()
        self.analyzer = FrequencyAnalyzer()
        self.scorer = ConfidenceScorer()
        self.categorizer = categorizer or Categorizer()
        self.deduplicator = Deduplicator()

        logger.info(
            f"Pipeline initialized. "
            f"Default strategy: {self.default_strategy}. "
            f"Category rules: {len(self.categorizer)}."
        )

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def run(
        self,
        transactions: Iterable[Any] | pd.DataFrame,
        existing: Iterable[Any] | None = None,
        options: DetectionOptions | Mapping[str, Any] | None = None,
    ) -> List[DetectedPattern]:
        """
        Run the full detection pipeline.

        Args:
            transactions: Transaction records (dicts, RawTransactions or a
                DataFrame) with description, amount and date; id and
                direction / transaction_type are optional. Malformed records
                are skipped.
            existing: Previously persisted bills / income sources with amount
                and frequency. Matching patterns are suppressed.
            options: DetectionOptions or an equivalent dict.

        Returns:
            DetectedPatterns, recurring first, then by confidence.

        Raises:
            ValueError: If options name an unknown cluster strategy.
        """
        opts = DetectionOptions.from_dict(options)
        strategy = get_grouping_strategy(opts.cluster_strategy or self.default_strategy, self.normalizer)

        # --- Stage 1: Input preparation ---
        txns = self._prepare(transactions, opts)
        logger.info(f"Pipeline starting. Valid transactions: {len(txns):,}. Strategy: {strategy.name}.")
        if not txns:
            return []

        # --- Stage 2: Grouping ---
        arena = strategy.group(txns)
        logger.info(f"Stage 2 complete. Candidate groups: {len(arena):,}.")

        # --- Stage 3: Analysis, scoring, categorization ---
        patterns: List[DetectedPattern] = []
        for group in arena:
            pattern = self._build_pattern(group, strategy.name)
            if pattern is not None:
                patterns.append(pattern)
        logger.info(f"Stage 3 complete. Patterns retained: {len(patterns):,} of {len(arena):,} groups.")

        # --- Stage 4: Assembly ---
        patterns = self.deduplicator.merge_enrichment(patterns, opts.enrichment_hints)
        before = len(patterns)
        patterns = self.deduplicator.filter_existing(patterns, existing)
        patterns = self.deduplicator.rank(patterns)
        logger.info(
            f"Pipeline complete. Patterns: {len(patterns):,}. "
            f"Suppressed as existing: {before - len(patterns):,}."
        )

        return patterns

    @staticmethod
    def to_frame(patterns: List[DetectedPattern]) -> pd.DataFrame:
        """
        Converts DetectedPatterns to a flat DataFrame. List columns are
        pipe-joined so the frame round-trips through CSV.
        """
        if not patterns:
            return pd.DataFrame(columns=OUTPUT_COLUMNS)

        rows = []
        for p in patterns:
            rows.append({
                "name": p.name,
                "representative_amount": p.representative_amount,
                "frequency": p.frequency.value,
                "confidence": p.confidence,
                "is_recurring": p.is_recurring,
                "categories": " | ".join(p.categories),
                "occurrence_count": p.occurrence_count,
                "first_seen": p.first_seen.strftime("%Y-%m-%d"),
                "last_seen": p.last_seen.strftime("%Y-%m-%d"),
                "direction": p.direction.value,
                "mean_gap_days": p.mean_gap_days,
                "amount_std": p.amount_std,
                "source_transaction_ids": "|".join(str(x) for x in p.source_transaction_ids),
            })

        return pd.DataFrame(rows, columns=OUTPUT_COLUMNS)

    # -------------------------------------------------------------------------
    # INTERNAL: INPUT PREPARATION
    # -------------------------------------------------------------------------

    def _prepare(self, transactions: Iterable[Any] | pd.DataFrame, opts: DetectionOptions) -> List[RawTransaction]:
        """
        Validates records, drops duplicates and out-of-window rows, and
        orders the batch oldest first.
        """
        if isinstance(transactions, pd.DataFrame):
            records = transactions.to_dict("records")
        else:
            records = list(transactions or [])

        txns: List[RawTransaction] = []
        seen_ids = set()
        skipped = 0
        for position, record in enumerate(records):
            try:
                txn = RawTransaction.from_record(record, position, self.input_config)
            except (AttributeError, TypeError, ValueError):
                txn = None
            if txn is None:
                skipped += 1
                logger.debug(f"Skipping malformed transaction at position {position}.")
                continue
            if txn.id in seen_ids:
                skipped += 1
                logger.debug(f"Skipping duplicate transaction id {txn.id!r}.")
                continue
            seen_ids.add(txn.id)
            txns.append(txn)

        if skipped:
            logger.info(f"Skipped {skipped:,} malformed or duplicate transactions.")

        if opts.direction is not None:
            txns = [t for t in txns if t.direction == opts.direction]

        if opts.lookback_days is not None and txns:
            cutoff = max(t.date for t in txns) - timedelta(days=opts.lookback_days)
            txns = [t for t in txns if t.date >= cutoff]

        # sorted() is stable, so same-day transactions keep their input order.
        return sorted(txns, key=lambda t: t.date)

    # -------------------------------------------------------------------------
    # INTERNAL: PATTERN CONSTRUCTION
    # -------------------------------------------------------------------------

    def _build_pattern(self, group: CandidateGroup, strategy_name: str) -> DetectedPattern | None:
        """
        Builds a DetectedPattern from one group, or returns None when the
        group does not carry enough signal to be worth surfacing.
        """
        members = group.sorted_members()
        dates = [m[0] for m in members]
        amounts = [m[1] for m in members]
        ids = [m[2] for m in members]

        frequency_result = self.analyzer.analyze(dates)
        score = self.scorer.score(amounts, frequency_result)
        if not score.keep:
            return None

        frequency = frequency_result.frequency
        if group.occurrence_count < 2:
            frequency = Frequency.ONE_TIME

        mean_amount = float(np.mean(amounts))
        if strategy_name == "amount":
            name = self._name_from_common_words(group.names, frequency, group.direction)
        else:
            name = self._most_common_name(group.names)

        categories = self.categorizer.categorize(name, mean_amount, group.direction)

        return DetectedPattern(
            name=name,
            representative_amount=round(mean_amount, 2),
            frequency=frequency,
            confidence=score.confidence,
            categories=categories,
            occurrence_count=len(ids),
            first_seen=dates[0],
            last_seen=dates[-1],
            source_transaction_ids=ids,
            is_recurring=score.is_recurring,
            direction=group.direction,
            mean_gap_days=frequency_result.mean_gap_days,
            amount_std=round(float(np.std(amounts)), 2),
        )

    @staticmethod
    def _most_common_name(names: List[str]) -> str:
        # Counter preserves first-seen order on ties.
        return Counter(names).most_common(1)[0][0]

    def _name_from_common_words(self, names: List[str], frequency: Frequency, direction: Direction) -> str:
        """
        Amount buckets can mix descriptions, so the name is built from words
        shared by at least half of the members. Falls back to a
        frequency-based label ("Monthly Income") when nothing is shared.
        """
        min_len = self.naming_config.get("name_min_word_length", 4)
        share = self.naming_config.get("name_word_share", 0.5)
        max_words = self.naming_config.get("name_max_words", 3)

        counts: Counter = Counter()
        for name in names:
            # Count each word once per description, keeping first-seen order.
            counts.update(list(dict.fromkeys(w for w in name.split() if len(w) >= min_len)))

        threshold = len(names) * share
        common = [w for w, c in counts.items() if c >= threshold][:max_words]
        if common:
            return " ".join(w.capitalize() for w in common)

        kind = "Income" if direction == Direction.INFLOW else "Payment"
        return f"{frequency.value.title()} {kind}"


def detect_patterns(
    transactions: Iterable[Any] | pd.DataFrame,
    existing: Iterable[Any] | None = None,
    options: DetectionOptions | Mapping[str, Any] | None = None,
) -> List[DetectedPattern]:
    """
    Functional entry point: detect recurring and one-time patterns in a
    bounded batch of transactions. See PatternDetectionPipeline.run().
    """
    return PatternDetectionPipeline().run(transactions, existing=existing, options=options)
