"""StepGraph — computes next/previous steps from the accumulated answers.

The graph is a pure function of (current step id, answers): it performs no
I/O and keeps no state between calls, so UIs may call it redundantly (e.g.
to render a "jump back to a completed step" list) without side effects.

Routing model:

  - The *default successor* of a step is the next declared step that is not
    conditional, or ``Boundary.TERMINAL`` past the last one.  It never
    depends on the answers.
  - The *rules* of a step are its explicit ``branches`` followed by one
    implicit skip rule per conditional step lying between the step and its
    default successor (``goto`` that step when its ``show_if`` holds).
  - ``resolve_next`` evaluates the rules in order; the first match wins,
    otherwise the default successor applies.
  - ``resolve_previous`` is the structural inverse: the step whose resolved
    successor is ``current`` under the same answers.
"""

from __future__ import annotations

import logging
from typing import Any

from onboarding_flow.definition import QuestionnaireDefinition
from onboarding_flow.evaluator import PredicateEvaluator, is_empty
from onboarding_flow.models.step import Boundary, BranchRule, Step

logger = logging.getLogger(__name__)

# Resolver results: a step id, or one of the two boundary markers.
StepRef = int | Boundary


class StepGraph:
    """Branching resolver over a loaded :class:`QuestionnaireDefinition`.

    Args:
        definition: a loaded definition; its steps are read once here.
    """

    def __init__(self, definition: QuestionnaireDefinition) -> None:
        self._definition = definition
        self._evaluator = PredicateEvaluator()
        self._order: list[int] = [s.id for s in definition.steps]
        self._index: dict[int, int] = {sid: i for i, sid in enumerate(self._order)}

        # Precompute successors and rule lists; both are answer-independent.
        self._default: dict[int, StepRef] = {}
        self._rules: dict[int, list[BranchRule]] = {}
        for i, step in enumerate(definition.steps):
            successor: StepRef = Boundary.TERMINAL
            skip_rules: list[BranchRule] = []
            for later in definition.steps[i + 1:]:
                if not later.is_conditional:
                    successor = later.id
                    break
                skip_rules.append(BranchRule(when=later.show_if, goto=later.id))
            self._default[step.id] = successor
            self._rules[step.id] = [*step.branches, *skip_rules]

    @property
    def definition(self) -> QuestionnaireDefinition:
        return self._definition

    @property
    def first_step_id(self) -> int:
        return self._order[0]

    # ==================================================================
    # Resolution
    # ==================================================================

    def default_successor(self, step_id: int) -> StepRef:
        """The fixed successor used when no rule of ``step_id`` matches."""
        self._check(step_id)
        return self._default[step_id]

    def rules_for(self, step_id: int) -> list[BranchRule]:
        """Explicit branches, then implicit skip rules, in evaluation order."""
        self._check(step_id)
        return list(self._rules[step_id])

    def resolve_next(self, current: int, answers: dict[str, Any]) -> StepRef:
        """Return the step after ``current``, or ``Boundary.TERMINAL``."""
        self._check(current)
        for rule in self._rules[current]:
            if self._evaluator.matches(rule.when, answers):
                return rule.goto
        return self._default[current]

    def resolve_previous(self, current: StepRef, answers: dict[str, Any]) -> StepRef:
        """Return the step that leads to ``current``, or ``Boundary.START``.

        Decision table:
          - TERMINAL: last step on the path
          - first declared step: START
          - ``current`` on the path: its predecessor on the path
          - ``current`` off the path: nearest preceding step whose resolved
            successor is ``current``, else the nearest preceding on-path
            step, else START
        """
        path = self.path(answers)

        if current == Boundary.TERMINAL:
            return path[-1]
        if current == Boundary.START:
            return Boundary.START

        self._check(current)
        if current == self.first_step_id:
            return Boundary.START

        if current in path:
            pos = path.index(current)
            return path[pos - 1] if pos > 0 else Boundary.START

        # Off-path step (e.g. reached before a branching answer changed)
        preceding = self._order[: self._index[current]]
        for candidate in reversed(preceding):
            if self.resolve_next(candidate, answers) == current:
                return candidate
        on_path = set(path)
        for candidate in reversed(preceding):
            if candidate in on_path:
                return candidate
        return Boundary.START

    # ==================================================================
    # Path helpers
    # ==================================================================

    def path(self, answers: dict[str, Any]) -> list[int]:
        """Ordered step ids visited from the first step to TERMINAL.

        Branch targets are validated as forward-only, so the walk is finite.
        """
        visited: list[int] = []
        step: StepRef = self.first_step_id
        while step != Boundary.TERMINAL:
            visited.append(step)
            step = self.resolve_next(step, answers)
        return visited

    def is_on_path(self, step_id: int, answers: dict[str, Any]) -> bool:
        self._check(step_id)
        return step_id in self.path(answers)

    def progress(self, current: int, answers: dict[str, Any]) -> tuple[int, int]:
        """Return (1-based position, total steps) of ``current`` on the path.

        Off-path steps report the position of their on-path predecessor.
        """
        path = self.path(answers)
        if current in path:
            return path.index(current) + 1, len(path)
        previous = self.resolve_previous(current, answers)
        position = path.index(previous) + 1 if previous in path else 0
        return position, len(path)

    def completed_steps(self, answers: dict[str, Any]) -> list[int]:
        """On-path steps whose answer key holds a non-empty value."""
        return [
            sid for sid in self.path(answers)
            if not is_empty(answers.get(self._definition.get_step(sid).key))
        ]

    def first_unanswered(self, answers: dict[str, Any]) -> StepRef:
        """First required on-path step without an answer, else TERMINAL."""
        for sid in self.path(answers):
            step = self._definition.get_step(sid)
            if step.required and is_empty(answers.get(step.key)):
                return sid
        return Boundary.TERMINAL

    def is_complete(self, answers: dict[str, Any]) -> bool:
        """True when every required step on the path has an answer."""
        return self.first_unanswered(answers) == Boundary.TERMINAL

    def prune(self, answers: dict[str, Any]) -> dict[str, Any]:
        """Return a new answer set without keys of off-path conditional steps.

        Keys that do not belong to any step are kept untouched.  Pruning is
        repeated until stable because removing one answer can take further
        conditional steps off the path (e.g. ``race_distance`` →
        ``race_distance_km``).
        """
        pruned = dict(answers)
        while True:
            on_path = set(self.path(pruned))
            dropped = [
                s.key for s in self._definition.steps
                if s.is_conditional and s.id not in on_path and s.key in pruned
            ]
            if not dropped:
                return pruned
            logger.debug("Pruning off-path answers: %s", dropped)
            for key in dropped:
                del pruned[key]

    def step(self, step_id: int) -> Step:
        return self._definition.get_step(step_id)

    def _check(self, step_id: Any) -> None:
        if step_id not in self._index:
            raise ValueError(f"Unknown step id: {step_id}")
