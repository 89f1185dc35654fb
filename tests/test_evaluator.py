"""PredicateEvaluator unit tests — every operator plus missing-key handling.

Operator reference (from evaluator._compare):
    eq, ne              — equality / inequality
    in, not_in          — membership of the answer in a value list
    lt, le, gt, ge      — numeric comparisons (auto-coerces strings to float)
    between             — inclusive range check, value = [lo, hi]
    contains            — substring (str) or element (list) membership
    not_contains        — inverse of contains
    contains_any        — any of value items in answer (list or str)
    contains_all        — all of value items in answer (list or str)
    matches             — regex match (re.search)
    present, absent     — answer is (not) empty
"""

import pytest

from onboarding_flow.evaluator import PredicateEvaluator, is_empty
from onboarding_flow.models.step import Predicate


def _pred(key, op, value=None, field=None):
    return Predicate(key=key, op=op, value=value, field=field)


@pytest.fixture
def ev():
    return PredicateEvaluator()


class TestEquality:
    def test_eq(self, ev):
        assert ev.evaluate(_pred("goal", "eq", "autre"), {"goal": "autre"})
        assert not ev.evaluate(_pred("goal", "eq", "autre"), {"goal": "reprendre"})

    def test_ne(self, ev):
        assert ev.evaluate(_pred("goal", "ne", "autre"), {"goal": "reprendre"})
        assert not ev.evaluate(_pred("goal", "ne", "autre"), {"goal": "autre"})


class TestMembership:
    def test_in(self, ev):
        pred = _pred("goal", "in", ["courir_race", "ameliorer_chrono"])
        assert ev.evaluate(pred, {"goal": "ameliorer_chrono"})
        assert not ev.evaluate(pred, {"goal": "entretenir"})

    def test_not_in(self, ev):
        pred = _pred("goal", "not_in", ["courir_race"])
        assert ev.evaluate(pred, {"goal": "entretenir"})
        assert not ev.evaluate(pred, {"goal": "courir_race"})

    def test_in_requires_list_value(self, ev):
        assert not ev.evaluate(_pred("goal", "in", "courir_race"), {"goal": "courir_race"})

    def test_contains_list(self, ev):
        pred = _pred("places", "contains", "autre")
        assert ev.evaluate(pred, {"places": ["route", "autre"]})
        assert not ev.evaluate(pred, {"places": ["route"]})

    def test_contains_string(self, ev):
        assert ev.evaluate(_pred("note", "contains", "genou"), {"note": "douleur au genou"})

    def test_not_contains(self, ev):
        pred = _pred("places", "not_contains", "autre")
        assert ev.evaluate(pred, {"places": ["piste"]})
        assert not ev.evaluate(pred, {"places": ["autre"]})

    def test_contains_any(self, ev):
        pred = _pred("days", "contains_any", ["saturday", "sunday"])
        assert ev.evaluate(pred, {"days": ["monday", "sunday"]})
        assert not ev.evaluate(pred, {"days": ["monday"]})

    def test_contains_all(self, ev):
        pred = _pred("days", "contains_all", ["saturday", "sunday"])
        assert ev.evaluate(pred, {"days": ["saturday", "sunday", "monday"]})
        assert not ev.evaluate(pred, {"days": ["sunday"]})


class TestNumeric:
    def test_comparisons(self, ev):
        answers = {"volume": 20}
        assert ev.evaluate(_pred("volume", "lt", 30), answers)
        assert ev.evaluate(_pred("volume", "le", 20), answers)
        assert ev.evaluate(_pred("volume", "gt", 10), answers)
        assert ev.evaluate(_pred("volume", "ge", 20), answers)
        assert not ev.evaluate(_pred("volume", "gt", 20), answers)

    def test_string_answers_are_coerced(self, ev):
        assert ev.evaluate(_pred("volume", "gt", 10), {"volume": "15"})

    def test_between_inclusive(self, ev):
        pred = _pred("height", "between", [150, 200])
        assert ev.evaluate(pred, {"height": 150})
        assert ev.evaluate(pred, {"height": 200})
        assert not ev.evaluate(pred, {"height": 201})

    def test_non_numeric_answer_is_false(self, ev):
        assert not ev.evaluate(_pred("volume", "gt", 10), {"volume": "beaucoup"})


class TestRegex:
    def test_matches(self, ev):
        assert ev.evaluate(_pred("email", "matches", r"@example\.com$"), {"email": "a@example.com"})

    def test_invalid_regex_is_false(self, ev):
        assert not ev.evaluate(_pred("email", "matches", "("), {"email": "a@example.com"})


class TestPresence:
    def test_present(self, ev):
        assert ev.evaluate(_pred("injuries", "present"), {"injuries": "genou"})
        assert not ev.evaluate(_pred("injuries", "present"), {"injuries": "  "})
        assert not ev.evaluate(_pred("injuries", "present"), {})

    def test_absent(self, ev):
        assert ev.evaluate(_pred("injuries", "absent"), {})
        assert ev.evaluate(_pred("days", "absent"), {"days": []})
        assert not ev.evaluate(_pred("injuries", "absent"), {"injuries": "genou"})


class TestMissingKeys:
    @pytest.mark.parametrize("op,value", [
        ("eq", "autre"),
        ("ne", "autre"),
        ("in", ["a"]),
        ("not_in", ["a"]),
        ("contains", "a"),
        ("not_contains", "a"),
        ("gt", 1),
    ])
    def test_missing_key_is_false(self, ev, op, value):
        assert not ev.evaluate(_pred("unknown", op, value), {}), (
            f"{op} on a missing key must not match"
        )

    def test_field_drill_down(self, ev):
        answers = {"times": {"10km": "00:52:00"}}
        assert ev.evaluate(_pred("times", "eq", "00:52:00", field="10km"), answers)
        assert not ev.evaluate(_pred("times", "eq", "00:52:00", field="5km"), answers)

    def test_field_on_non_dict_is_false(self, ev):
        assert not ev.evaluate(_pred("times", "eq", "x", field="10km"), {"times": "x"})


class TestMatches:
    def test_all_predicates_must_hold(self, ev):
        preds = [_pred("goal", "eq", "courir_race"), _pred("distance", "eq", "autre")]
        assert ev.matches(preds, {"goal": "courir_race", "distance": "autre"})
        assert not ev.matches(preds, {"goal": "courir_race", "distance": "10km"})

    def test_empty_list_matches(self, ev):
        assert ev.matches([], {})


class TestIsEmpty:
    @pytest.mark.parametrize("value", [None, "", "   ", [], {}])
    def test_empty(self, value):
        assert is_empty(value)

    @pytest.mark.parametrize("value", [0, False, "x", ["a"], {"k": 1}])
    def test_not_empty(self, value):
        assert not is_empty(value)
