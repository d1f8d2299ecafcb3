"""
name_normalizer.py
-------------------
Turns a raw bank-feed description into a stable grouping key.

    "SQ *BLUE BOTTLE COFFEE 8812 CA"  →  "BLUE BOTTLE COFFEE"
    "ACH DEBIT NETFLIX.COM 03/14"     →  "NETFLIX.COM"

Noise is removed in a fixed sequence of passes. The sequence is repeated
until the string stops changing, because removing one suffix often exposes
another (a date sitting in front of a reference code, a state code in front
of a time). Word lists come from the name_normalization block of
config.yaml.
"""

import re
from typing import Any, Dict

from config.config_loader import get_name_normalization_config

# Guards against pathological inputs; real descriptions settle in 2–3 passes.
_MAX_PASSES = 10


def _alternation(words: list[str]) -> str:
    # Longest first so "DEBIT CARD" wins over "DEBIT".
    ordered = sorted(words, key=len, reverse=True)
    return "|".join(re.escape(w.upper()).replace(r"\ ", r"\s+") for w in ordered)


class NameNormalizer:
    """
    Pure, deterministic description cleaner.

    Usage:
        normalizer = NameNormalizer()
        key = normalizer.normalize("POS PURCHASE SPOTIFY USA 1234")
        if normalizer.is_clusterable(key):
            ...
    """

    def __init__(self, config: Dict[str, Any] | None = None):
        self.config = config if config is not None else get_name_normalization_config()
        self.min_key_length = self.config.get("min_key_length", 3)
        self.stoplist = {w.upper() for w in self.config.get("stoplist", [])}
        self._passes = self._compile_passes()

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def normalize(self, description: str | None) -> str:
        """
        Returns the normalized key for a description. Empty string for
        empty input.
        """
        if not description:
            return ""

        text = self._collapse(str(description).upper())
        for _ in range(_MAX_PASSES):
            cleaned = text
            for pattern, replacement in self._passes:
                cleaned = pattern.sub(replacement, cleaned)
                cleaned = self._collapse(cleaned)
            if cleaned == text:
                break
            text = cleaned

        return text

    def is_clusterable(self, key: str) -> bool:
        """
        Keys that are too short or purely generic ("PAYMENT", "FEE") cannot
        anchor a pattern and are left out of name clustering.
        """
        if len(key) < self.min_key_length:
            return False
        return key not in self.stoplist

    # -------------------------------------------------------------------------
    # INTERNAL
    # -------------------------------------------------------------------------

    def _compile_passes(self) -> list[tuple[re.Pattern, str]]:
        processors = _alternation(self.config.get("processor_prefixes", []))
        types = _alternation(self.config.get("type_prefixes", []))
        methods = _alternation(self.config.get("method_indicators", []))
        actions = _alternation(self.config.get("action_words", []))
        regions = _alternation(self.config.get("region_codes", []))

        passes = [
            # Trailing reference / store numbers: "NETFLIX.COM 123456", "#4821"
            (re.compile(r"\s+#?\d{4,}$"), ""),
        ]
        # Trailing region codes: "... SAN FRANCISCO CA"
        if regions:
            passes.append((re.compile(rf"\s+(?:{regions})$"), ""))
        # Processor prefixes are matched while their asterisk is still
        # present, so "SQ*COFFEE" does not collapse into "SQCOFFEE".
        if processors:
            passes.append((re.compile(rf"^(?:{processors})\s*\*+\s*"), ""))
        passes.append((re.compile(r"\*+"), " "))
        if processors:
            passes.append((re.compile(rf"^(?:{processors})\s+(?=\S)"), ""))
        if types:
            # Card-present prefixes often carry a reference: "CHECKCARD 0314 ..."
            passes.append((re.compile(rf"^(?:{types})\b[\s:-]*(?:#?\d{{4,}}\s+)?(?=\S)"), ""))
        # Standalone words only: "T-MOBILE" and "WEBFLOW.COM" stay intact.
        if methods:
            passes.append((re.compile(rf"(?<![\w.\-])(?:{methods})(?![\w.\-])"), " "))
        if actions:
            passes.append((re.compile(rf"(?<![\w.\-])(?:{actions})(?![\w.\-])"), " "))
        passes.extend([
            # Trailing time of day: "10:32", "10:32:05", "7:05 PM"
            (re.compile(r"\s+\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AP]M)?$"), ""),
            # Trailing dates: "03/14", "03-14-2024", "2024-03-14"
            (re.compile(r"\s+\d{1,2}[/-]\d{1,2}(?:[/-]\d{2,4})?$"), ""),
            (re.compile(r"\s+\d{4}-\d{2}-\d{2}$"), ""),
            # Leftover separators at either end
            (re.compile(r"^[\s#:\-/]+|[\s#:\-/]+$"), ""),
        ])
        return passes

    @staticmethod
    def _collapse(text: str) -> str:
        return re.sub(r"\s+", " ", text).strip()
