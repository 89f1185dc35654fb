"""QuestionnaireDefinition — loads the questionnaire YAML into typed steps.

This is the single source of truth for step data at runtime.  The definition
is loaded once at startup and provides lookup by step id and by field key.

Usage::

    definition = QuestionnaireDefinition()   # defaults to the bundled YAML
    definition.load()

    step = definition.get_step(19)
    step = definition.get_step_by_key("problem_to_solve")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from onboarding_flow.models.step import Step

logger = logging.getLogger(__name__)

DEFAULT_DEFINITION_PATH = Path(__file__).resolve().parent / "data" / "questionnaire.yaml"


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class QuestionnaireDefinition:
    """Loads the questionnaire YAML and provides typed lookup.

    Attributes populated after :meth:`load`:

        version  — definition version tag (e.g. "v1")
        steps    — list[Step] in ascending id order (the default order)
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else DEFAULT_DEFINITION_PATH

        # Populated by load()
        self.version: str | None = None
        self.steps: list[Step] = []
        self._by_id: dict[int, Step] = {}
        self._by_key: dict[str, Step] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> "QuestionnaireDefinition":
        """Parse the YAML file into typed steps and validate the structure.

        Raises ``FileNotFoundError`` if the file is missing and
        ``ValueError`` if the definition is inconsistent.
        """
        raw = load_yaml(self._path)
        if isinstance(raw, list):
            raw = {"steps": raw}
        if not isinstance(raw, dict) or not raw.get("steps"):
            raise ValueError(f"Questionnaire definition has no steps: {self._path}")

        self.version = str(raw.get("version")) if raw.get("version") is not None else None
        self.load_steps([Step(**s) for s in raw["steps"]])
        logger.info(
            "QuestionnaireDefinition loaded: version=%s, %d steps (%d conditional)",
            self.version,
            len(self.steps),
            sum(1 for s in self.steps if s.is_conditional),
        )
        return self

    def load_steps(self, steps: list[Step]) -> "QuestionnaireDefinition":
        """Install already-parsed steps (used by ``load`` and by tests)."""
        by_id: dict[int, Step] = {}
        by_key: dict[str, Step] = {}
        for step in steps:
            if step.id in by_id:
                raise ValueError(f"Duplicate step id: {step.id}")
            if step.key in by_key:
                raise ValueError(f"Duplicate step key: {step.key!r}")
            by_id[step.id] = step
            by_key[step.key] = step

        if not by_id:
            raise ValueError("Questionnaire definition has no steps")

        for step in steps:
            for rule in step.branches:
                if rule.goto not in by_id:
                    raise ValueError(
                        f"Step {step.id} branches to unknown step {rule.goto}"
                    )
                # Forward-only targets keep every path walk finite
                if rule.goto <= step.id:
                    raise ValueError(
                        f"Step {step.id} branches backwards to step {rule.goto}"
                    )
            for pred in step.show_if:
                if pred.key not in by_key:
                    logger.warning(
                        "Step %d show_if references unknown key %r", step.id, pred.key,
                    )

        self.steps = sorted(steps, key=lambda s: s.id)
        self._by_id = by_id
        self._by_key = by_key
        return self

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    @property
    def first_step(self) -> Step:
        return self.steps[0]

    def has_step(self, step_id: int) -> bool:
        return step_id in self._by_id

    def get_step(self, step_id: int) -> Step:
        """Look up a step by id.

        Raises:
            ValueError: if the id is not declared.
        """
        try:
            return self._by_id[step_id]
        except KeyError:
            raise ValueError(f"Unknown step id: {step_id}") from None

    def get_step_by_key(self, key: str) -> Step | None:
        """Look up a step by the answer key it collects."""
        return self._by_key.get(key)

    def keys_of_type(self, *input_types: str) -> set[str]:
        """Return the answer keys of every step with one of ``input_types``."""
        return {s.key for s in self.steps if s.input_type in input_types}
