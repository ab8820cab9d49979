"""ConditionEvaluator — resolves declarative conditions against an answer.

Used in two places:

  - **validation**: every condition in ``question.validation`` must hold for
    an answer to be accepted
  - **responses**: ``ResponseSpec.rules`` are ``(when, text)`` pairs tried in
    order; the first rule whose conditions all hold supplies the text

A condition reads the answer by default, or a committed profile field when
``condition.path`` is set.  Any error raised while comparing counts as the
condition not holding.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from onboarding_flow.models.condition import Condition
from onboarding_flow.profile import Profile, get_path

logger = logging.getLogger(__name__)


class ConditionEvaluator:
    """Evaluates ``Condition`` lists against an answer and the profile."""

    def all_hold(
        self,
        conditions: Iterable[Condition],
        answer: Any,
        profile: Profile | None = None,
    ) -> bool:
        """True if every condition holds (vacuously true for an empty list)."""
        return all(self.check(c, answer, profile) for c in conditions)

    def check(self, condition: Condition, answer: Any, profile: Profile | None = None) -> bool:
        """Evaluate a single condition.

        Args:
            condition: the condition to evaluate
            answer: the parsed answer value
            profile: committed profile; required for conditions with ``path``

        Returns:
            Whether the condition holds.  Exceptions are logged and
            reported as False.
        """
        subject = answer
        if condition.path is not None:
            if profile is None:
                return False
            try:
                subject = get_path(profile, condition.path)
            except (KeyError, ValueError):
                logger.warning("Condition references unknown profile path %s", condition.path)
                return False

        try:
            return self._compare(condition.op, subject, condition.value)
        except Exception:
            logger.debug("Condition %s raised on %r; treating as false", condition.op, subject, exc_info=True)
            return False

    @staticmethod
    def _compare(op: str, answer: Any, value: Any) -> bool:
        """Apply an operator to an answer and an expected value.

        Handles type coercion for numeric comparisons (free-text answers may
        arrive as strings).
        """
        if op == "eq":
            return answer == value

        if op == "ne":
            return answer != value

        if op == "not_null":
            return answer is not None

        if op == "in":
            return answer in value

        # --- Emptiness / size ---
        if op == "is_empty":
            return answer is None or (hasattr(answer, "__len__") and len(answer) == 0)

        if op == "not_empty":
            return answer is not None and (not hasattr(answer, "__len__") or len(answer) > 0)

        if op == "count_ge":
            return isinstance(answer, list) and len(answer) >= int(value)

        if op == "count_le":
            return isinstance(answer, list) and len(answer) <= int(value)

        if op == "min_length":
            return len(answer) >= int(value)

        if op == "items_min_length":
            # Every element of a list answer must be long enough
            if not isinstance(answer, list) or not answer:
                return False
            return all(len(str(item)) >= int(value) for item in answer)

        # --- Numeric comparisons ---
        if op in ("lt", "le", "gt", "ge", "between"):
            if isinstance(answer, bool):
                return False
            try:
                ans_num = float(answer)
            except (TypeError, ValueError):
                return False

            if op == "lt":
                return ans_num < float(value)
            if op == "le":
                return ans_num <= float(value)
            if op == "gt":
                return ans_num > float(value)
            if op == "ge":
                return ans_num >= float(value)
            if op == "between":
                # value is expected to be [min, max]
                lo, hi = float(value[0]), float(value[1])
                return lo <= ans_num <= hi

        # --- Collection / string membership ---
        if op == "contains":
            # Works for both "X in list" and "substring in string"
            if isinstance(answer, list):
                return value in answer
            return str(value) in str(answer)

        if op == "icontains":
            needle = str(value).lower()
            if isinstance(answer, list):
                return any(str(item).lower() == needle for item in answer)
            return needle in str(answer).lower()

        if op == "not_contains":
            if isinstance(answer, list):
                return value not in answer
            return str(value) not in str(answer)

        if op == "contains_any":
            # value is a list; true if answer contains any of them
            if isinstance(answer, list):
                return any(v in answer for v in value)
            ans_str = str(answer)
            return any(str(v) in ans_str for v in value)

        if op == "matches":
            # Regex search against the answer string
            return bool(re.search(str(value), str(answer)))

        logger.warning("Unknown condition operator: %s", op)
        return False
