"""
models.py
----------
Core domain models. These are the typed contracts between engine layers.

- RawTransaction: Caller-owned input record, read-only for a run.
- CandidateGroup: Engine-owned cluster of transactions built by a grouping
  strategy. Lives for one detection run only.
- FrequencyResult / ConfidenceResult: Intermediate outputs of the
  analyzer and scorer.
- DetectedPattern: Engine output. One per accepted group.
- ExistingRecord / EnrichmentHint: Read-only collaborator data used by the
  deduplicator and the enrichment merge.
"""

from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Any, Mapping, Optional

import pandas as pd


class Frequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    ONE_TIME = "one-time"
    UNKNOWN = "unknown"

    @property
    def is_cadence(self) -> bool:
        """True for the five real payment cadences."""
        return self not in (Frequency.ONE_TIME, Frequency.UNKNOWN)

    @classmethod
    def parse(cls, value: Any) -> "Frequency":
        """
        Parses a frequency label as stored by callers. Unrecognised or
        missing values map to UNKNOWN.
        """
        if isinstance(value, Frequency):
            return value
        if value is None:
            return cls.UNKNOWN
        label = str(value).strip().lower().replace("_", "-")
        label = _FREQUENCY_ALIASES.get(label, label)
        try:
            return cls(label)
        except ValueError:
            return cls.UNKNOWN


_FREQUENCY_ALIASES = {
    "bi-weekly": "biweekly",
    "fortnightly": "biweekly",
    "every two weeks": "biweekly",
    "month": "monthly",
    "quarter": "quarterly",
    "yearly": "annual",
    "annually": "annual",
    "year": "annual",
    "onetime": "one-time",
    "once": "one-time",
    "week": "weekly",
}


class Direction(str, Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _parse_date(value: Any) -> Optional[date]:
    if _is_missing(value):
        return None
    if isinstance(value, date) and not isinstance(value, pd.Timestamp):
        return value.date() if hasattr(value, "hour") else value
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def _parse_amount(value: Any) -> Optional[float]:
    if _is_missing(value):
        return None
    if isinstance(value, str):
        value = value.replace("$", "").replace(",", "").strip()
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(amount):
        return None
    return amount


@dataclass(frozen=True)
class RawTransaction:
    """A single bank-feed transaction as supplied by the caller."""

    id: Any
    description: str
    amount: float                    # Signed. Comparisons use abs_amount.
    date: date
    direction: Direction

    @property
    def abs_amount(self) -> float:
        return abs(self.amount)

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        position: int,
        input_config: Mapping[str, Any],
    ) -> Optional["RawTransaction"]:
        """
        Builds a RawTransaction from a dict-like record (plain dict or a
        pandas row).

        Returns None when description, amount or date is missing or
        unparseable, so the caller can skip the record.
        """
        if isinstance(record, RawTransaction):
            return record

        description = record.get("description")
        if _is_missing(description):
            return None
        amount = _parse_amount(record.get("amount"))
        if amount is None:
            return None
        txn_date = _parse_date(record.get("date"))
        if txn_date is None:
            return None

        txn_id = record.get("id")
        if _is_missing(txn_id):
            txn_id = position

        return cls(
            id=txn_id,
            description=str(description),
            amount=amount,
            date=txn_date,
            direction=_infer_direction(record, amount, input_config),
        )


def _infer_direction(record: Mapping[str, Any], amount: float, input_config: Mapping[str, Any]) -> Direction:
    """Explicit direction, then transaction type, then the sign of the amount."""
    inflow_types = {t.lower() for t in input_config.get("inflow_types", [])}
    outflow_types = {t.lower() for t in input_config.get("outflow_types", [])}

    for key in ("direction", "transaction_type", "type"):
        value = record.get(key)
        if _is_missing(value):
            continue
        label = str(value).strip().lower()
        if label in inflow_types:
            return Direction.INFLOW
        if label in outflow_types:
            return Direction.OUTFLOW

    positive = Direction(input_config.get("positive_amount_direction", "inflow"))
    if amount >= 0:
        return positive
    return Direction.OUTFLOW if positive == Direction.INFLOW else Direction.INFLOW


@dataclass
class CandidateGroup:
    """
    A cluster of transactions believed to share one underlying obligation.

    Created by a grouping strategy on the first unmatched transaction and
    only ever appended to afterwards.
    """

    key: Any                         # Normalized name or seed amount
    direction: Direction
    member_ids: list = field(default_factory=list)
    amounts: list[float] = field(default_factory=list)
    dates: list[date] = field(default_factory=list)
    names: list[str] = field(default_factory=list)

    def append(self, txn: RawTransaction, name: str) -> None:
        self.member_ids.append(txn.id)
        self.amounts.append(txn.abs_amount)
        self.dates.append(txn.date)
        self.names.append(name)

    @property
    def occurrence_count(self) -> int:
        return len(self.member_ids)

    def sorted_members(self) -> list[tuple[date, float, Any]]:
        """(date, amount, id) triples in chronological order, stable on ties."""
        members = list(zip(self.dates, self.amounts, self.member_ids))
        return sorted(members, key=lambda m: m[0])


@dataclass
class FrequencyResult:
    """Output of the interval analyzer for one group."""

    frequency: Frequency
    base_confidence: float
    mean_gap_days: float | None = None
    gap_std_days: float | None = None
    gaps: list[int] = field(default_factory=list)


@dataclass
class ConfidenceResult:
    """Output of the confidence scorer for one group."""

    confidence: int                  # 0 – 100
    is_recurring: bool
    keep: bool                       # False → group is dropped from output


@dataclass
class DetectedPattern:
    """A detected recurring or one-time obligation / income source."""

    name: str
    representative_amount: float     # Mean of group amounts
    frequency: Frequency
    confidence: int                  # 0 – 100
    categories: list[str]            # Never empty, de-duplicated
    occurrence_count: int
    first_seen: date
    last_seen: date
    source_transaction_ids: list = field(default_factory=list)
    is_recurring: bool = False

    direction: Direction = Direction.OUTFLOW
    mean_gap_days: float | None = None
    amount_std: float = 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["frequency"] = self.frequency.value
        data["direction"] = self.direction.value
        data["first_seen"] = self.first_seen.isoformat()
        data["last_seen"] = self.last_seen.isoformat()
        return data


@dataclass
class ExistingRecord:
    """A bill or income source the caller has already persisted."""

    amount: float
    frequency: Frequency
    name: str | None = None

    @classmethod
    def from_record(cls, record: Any) -> Optional["ExistingRecord"]:
        if isinstance(record, ExistingRecord):
            return record
        if not isinstance(record, Mapping):
            return None
        amount = _parse_amount(record.get("amount"))
        if amount is None:
            return None
        return cls(
            amount=abs(amount),
            frequency=Frequency.parse(record.get("frequency")),
            name=record.get("name"),
        )


@dataclass
class EnrichmentHint:
    """
    Classification suggested by an external service for a pattern with a
    matching amount (and frequency, when given).
    """

    amount: float
    frequency: Frequency | None = None
    name: str | None = None
    category: str | None = None
    confidence: float | None = None

    @classmethod
    def from_record(cls, record: Any) -> Optional["EnrichmentHint"]:
        """Returns None for hints that cannot be matched against a pattern."""
        if isinstance(record, EnrichmentHint):
            return record
        if not isinstance(record, Mapping):
            return None
        amount = _parse_amount(record.get("amount"))
        if amount is None:
            return None
        frequency = record.get("frequency")
        confidence = _parse_amount(record.get("confidence"))
        name = record.get("name")
        category = record.get("category")
        return cls(
            amount=abs(amount),
            frequency=None if _is_missing(frequency) else Frequency.parse(frequency),
            name=str(name) if not _is_missing(name) else None,
            category=str(category) if not _is_missing(category) else None,
            confidence=confidence,
        )


@dataclass
class DetectionOptions:
    """Caller-selected options for one detection run."""

    cluster_strategy: str | None = None   # "name" | "amount"; None → config default
    enrichment_hints: Any = None          # Iterable of hint records; validated during the merge
    lookback_days: int | None = None
    direction: Direction | None = None

    @classmethod
    def from_dict(cls, options: Mapping[str, Any] | None) -> "DetectionOptions":
        if options is None:
            return cls()
        if isinstance(options, DetectionOptions):
            return options
        direction = options.get("direction")
        return cls(
            cluster_strategy=options.get("cluster_strategy", options.get("clusterStrategy")),
            enrichment_hints=options.get("enrichment_hints"),
            lookback_days=options.get("lookback_days"),
            direction=Direction(direction) if direction else None,
        )
