"""
categorizer.py
---------------
Keyword rule table lookup layer.

Loads the ordered categorization rules from config.yaml (or takes an
explicit rule list) and assigns category tags to a pattern from its
normalized name and representative amount. Clustering never looks at the
result; categories are purely descriptive.

Rule table updates happen in config.yaml. No code changes required.
"""

import re
from typing import Any, Dict, List

from config.config_loader import get_categorization_config
from core.models import Direction

# Keywords this short ("att", "gas", "aws", "dd") only match whole words.
_WHOLE_WORD_MAX_LENGTH = 3


class Categorizer:
    """
    Ordered keyword → tags lookup with an amount-based fallback.

    Built once at init from the rule table. Thread-safe for reads.
    """

    def __init__(self, rules: List[Dict[str, Any]] | None = None, config: Dict[str, Any] | None = None):
        self.config = config if config is not None else get_categorization_config()
        rules = rules if rules is not None else self.config.get("rules", [])
        self.small_amount_threshold = self.config.get("small_amount_threshold", 20)
        self.small_amount_tag = self.config.get("small_amount_tag", "Subscription")
        self.inflow_fallback_tag = self.config.get("inflow_fallback_tag", "Other Income")
        self.amount_fallbacks = self.config.get("amount_fallbacks", [])
        self._rules = [self._compile_rule(rule) for rule in rules]

    def categorize(self, name: str, amount: float, direction: Direction | None = None) -> List[str]:
        """
        Args:
            name: Normalized pattern name.
            amount: Representative (absolute) amount.
            direction: Inflows skip the small-amount subscription tag and
                fall back to an income tag. Rules restricted to a direction
                only match patterns of that direction; None counts as outflow.

        Returns:
            Non-empty, de-duplicated list of tags in rule order.
        """
        name_lower = (name or "").lower()
        is_inflow = direction == Direction.INFLOW
        pattern_direction = Direction.INFLOW if is_inflow else Direction.OUTFLOW
        tags: List[str] = []

        for matcher, rule_tags, rule_direction in self._rules:
            if rule_direction is not None and rule_direction != pattern_direction:
                continue
            if matcher(name_lower):
                tags.extend(rule_tags)

        if not tags:
            tags.append(self.inflow_fallback_tag if is_inflow else self._fallback_tag(amount))

        # Small recurring charges are almost always subscriptions.
        if not is_inflow and amount < self.small_amount_threshold:
            tags.append(self.small_amount_tag)

        return list(dict.fromkeys(tags))

    def _fallback_tag(self, amount: float) -> str:
        for bucket in self.amount_fallbacks:
            max_amount = bucket.get("max_amount")
            if max_amount is None or amount < max_amount:
                return bucket["tag"]
        return "Other"

    @staticmethod
    def _compile_rule(rule: Dict[str, Any]):
        keywords = [k.lower() for k in rule["keywords"]]
        words = [k for k in keywords if len(k) <= _WHOLE_WORD_MAX_LENGTH]
        substrings = [k for k in keywords if len(k) > _WHOLE_WORD_MAX_LENGTH]
        word_pattern = (
            re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b") if words else None
        )

        def matcher(text: str) -> bool:
            if any(k in text for k in substrings):
                return True
            return bool(word_pattern and word_pattern.search(text))

        direction = rule.get("direction")
        return matcher, list(rule["tags"]), Direction(direction) if direction else None

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"Categorizer(rules={len(self)})"
