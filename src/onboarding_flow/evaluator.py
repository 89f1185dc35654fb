"""PredicateEvaluator — resolves skip and branch predicates against answers.

The step graph calls :meth:`matches` for every ``show_if`` list and every
``BranchRule.when`` list it considers.  Predicates are AND-ed together; an
empty list always matches.

A predicate that references a key absent from the answer set evaluates to
False and never raises (the ``absent`` operator is the one exception: it
exists to test for absence explicitly).
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from onboarding_flow.models.step import Predicate

logger = logging.getLogger(__name__)


def is_empty(value: Any) -> bool:
    """True for answers that count as "not answered" (None, blank, empty list)."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


class PredicateEvaluator:
    """Evaluates predicate lists against an answer set."""

    def matches(self, predicates: Iterable[Predicate], answers: dict[str, Any]) -> bool:
        """Return True if every predicate holds (vacuously True for none)."""
        return all(self.evaluate(pred, answers) for pred in predicates)

    def evaluate(self, pred: Predicate, answers: dict[str, Any]) -> bool:
        """Evaluate a single predicate against the answers dict."""
        answer = answers.get(pred.key)

        # If the predicate references a sub-field, drill into the answer dict
        if pred.field is not None:
            answer = answer.get(pred.field) if isinstance(answer, dict) else None

        if pred.op == "present":
            return not is_empty(answer)
        if pred.op == "absent":
            return is_empty(answer)

        if answer is None:
            return False

        return self._compare(pred.op, answer, pred.value)

    @staticmethod
    def _compare(op: str, answer: Any, value: Any) -> bool:
        """Apply an operator to an answer and an expected value.

        Handles type coercion for numeric comparisons (wheel answers may
        arrive as strings from older drafts).
        """
        if op == "eq":
            return answer == value

        if op == "ne":
            return answer != value

        if op == "in":
            return isinstance(value, (list, tuple)) and answer in value

        if op == "not_in":
            return isinstance(value, (list, tuple)) and answer not in value

        # --- Numeric comparisons ---
        if op in ("lt", "le", "gt", "ge", "between"):
            try:
                ans_num = float(answer)
                if op == "between":
                    lo, hi = float(value[0]), float(value[1])
                    return lo <= ans_num <= hi
                ref = float(value)
            except (TypeError, ValueError, IndexError):
                return False

            if op == "lt":
                return ans_num < ref
            if op == "le":
                return ans_num <= ref
            if op == "gt":
                return ans_num > ref
            return ans_num >= ref

        # --- Collection / string membership ---
        if op == "contains":
            if isinstance(answer, list):
                return value in answer
            return str(value) in str(answer)

        if op == "not_contains":
            if isinstance(answer, list):
                return value not in answer
            return str(value) not in str(answer)

        if op == "contains_any":
            if isinstance(answer, list):
                return any(v in answer for v in value)
            ans_str = str(answer)
            return any(str(v) in ans_str for v in value)

        if op == "contains_all":
            if isinstance(answer, list):
                return all(v in answer for v in value)
            ans_str = str(answer)
            return all(str(v) in ans_str for v in value)

        if op == "matches":
            try:
                return bool(re.search(str(value), str(answer)))
            except re.error:
                logger.warning("Invalid regex in predicate: %r", value)
                return False

        logger.warning("Unknown predicate operator: %s", op)
        return False
