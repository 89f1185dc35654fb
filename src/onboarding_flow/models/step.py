"""Step models for the onboarding questionnaire graph.

Each step maps to one question screen.  Routing between steps is expressed
with two kinds of rules, both built from the same ``Predicate`` model:

  - ``show_if``: skip rule.  A step carrying predicates here is *conditional*
    and only lies on the path when all of them hold.
  - ``branches``: explicit branch rules attached to a source step.  The first
    rule whose predicates all hold overrides the default successor.

The ``Boundary`` enum marks the two ends of the flow so resolvers can return
"terminal" (go to the review screen) and "start" (exit the questionnaire)
without raising.
"""

from __future__ import annotations

import enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, model_validator

from onboarding_flow.constants import OPTION_INPUT_TYPES


class Boundary(str, enum.Enum):
    """Markers returned past either end of the questionnaire."""

    START = "start"
    TERMINAL = "terminal"


# --- Conditional logic models ---

class Predicate(BaseModel):
    """A single condition that references a prior answer by field key.

    Operators:
      - eq, ne: equality / inequality
      - in, not_in: answer is (not) one of ``value`` (a list)
      - lt, le, gt, ge: numeric comparisons
      - between: value is [min, max] inclusive
      - contains, not_contains: substring / element membership
      - contains_any, contains_all: set membership
      - matches: regex match
      - present, absent: the key holds a non-empty answer (or not)
    """

    key: str
    field: Optional[str] = None
    op: Literal[
        "eq", "ne", "in", "not_in",
        "contains", "not_contains", "matches",
        "contains_any", "contains_all",
        "lt", "le", "gt", "ge", "between",
        "present", "absent",
    ]
    value: Any = None


class BranchRule(BaseModel):
    """If ALL predicates in ``when`` are true, go to step ``goto``.

    An empty ``when`` list always matches.
    """

    when: List[Predicate] = []
    goto: int


# --- Shared option/config models ---

class Option(BaseModel):
    """A selectable option with a stored value and a display label."""

    value: Any
    label: str


class WheelConfig(BaseModel):
    """Numeric wheel picker bounds."""

    min: float
    max: float
    step: float = 1.0
    unit: Optional[str] = None

    @model_validator(mode="after")
    def _chk(self):
        if self.min >= self.max:
            raise ValueError("wheel min must be < max")
        return self


class Step(BaseModel):
    """One question screen of the questionnaire."""

    id: int
    key: str
    title: str
    subtitle: Optional[str] = None
    input_type: Literal["email", "text", "wheel", "radio", "checkbox", "date", "multi-text"]
    required: bool = True
    options: Optional[List[Option]] = None
    wheel: Optional[WheelConfig] = None
    show_if: List[Predicate] = []
    branches: List[BranchRule] = []

    @model_validator(mode="after")
    def _chk(self):
        if self.input_type in OPTION_INPUT_TYPES and not self.options:
            raise ValueError(f"step {self.id} ({self.input_type}) requires options")
        if self.input_type == "wheel" and self.wheel is None:
            raise ValueError(f"step {self.id} (wheel) requires a wheel config")
        return self

    @property
    def is_conditional(self) -> bool:
        """True if the step is skipped unless its ``show_if`` predicates hold."""
        return bool(self.show_if)

    @property
    def option_values(self) -> list[Any]:
        return [o.value for o in self.options or []]
