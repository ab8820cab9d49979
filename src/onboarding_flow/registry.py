"""SchemaRegistry — loads a flow definition YAML into typed models.

This is the single source of truth for flow data at runtime.  The registry
is loaded once at startup and is read-only afterwards: sections and
questions are never mutated by a run.

Usage::

    registry = SchemaRegistry()       # defaults to flows/v1.yaml
    registry.load()                   # parse and validate the YAML

    registry.section_order            # ["life", "health", ...]
    q = registry.get_question(0, 0)   # first question of the first section
    registry.total_questions          # 34
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from onboarding_flow.constants import SCHEMA_PATH
from onboarding_flow.models.question import Question, question_mapper
from onboarding_flow.models.schema import FlowSchema, Section
from onboarding_flow.parsers import PARSERS

logger = logging.getLogger(__name__)


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class SchemaRegistry:
    """Loads a flow YAML and provides typed, ordered lookup.

    Attributes populated after :meth:`load`:

        schema         — the validated FlowSchema
        section_order  — list[section_id] in presentation order
        sections       — dict[section_id, Section]
    """

    def __init__(self, schema_path: str | Path | None = None) -> None:
        self._path = Path(schema_path) if schema_path is not None else SCHEMA_PATH

        # Populated by load()
        self.schema: FlowSchema | None = None
        self.section_order: list[str] = []
        self.sections: dict[str, Section] = {}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SchemaRegistry":
        """Build a loaded registry from an in-memory flow definition."""
        registry = cls()
        registry._load_data(data, source="<dict>")
        return registry

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Parse the flow YAML into typed models.

        Call this once at startup.  Raises ``FileNotFoundError`` if the YAML
        file is missing and ``ValueError`` if it is not a valid flow.
        """
        self._load_data(load_yaml(self._path), source=str(self._path))

    def _load_data(self, data: Any, *, source: str) -> None:
        if not isinstance(data, dict):
            raise ValueError(f"Flow definition {source} must be a mapping")

        # Check question types and parser names up front so errors name
        # the offending question instead of a pydantic union branch
        for raw_section in data.get("sections") or []:
            section_id = raw_section.get("id")
            for q_dict in raw_section.get("questions") or []:
                qtype = q_dict.get("type")
                if question_mapper.get(qtype) is None:
                    raise ValueError(
                        f"Unknown question type '{qtype}' in {section_id}/{q_dict.get('id')}"
                    )
                parser = q_dict.get("parser")
                if parser is not None and parser not in PARSERS:
                    raise ValueError(
                        f"Unknown parser '{parser}' in {section_id}/{q_dict.get('id')}"
                    )

        schema = FlowSchema(**data)
        self.schema = schema
        self.section_order = [s.id for s in schema.sections]
        self.sections = {s.id: s for s in schema.sections}
        logger.info(
            "SchemaRegistry loaded %s: %d sections, %d questions",
            source,
            len(self.section_order),
            self.total_questions,
        )

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    @property
    def profile_defaults(self) -> dict[str, dict[str, Any]]:
        """Category → field → default value, as declared by the flow."""
        return self._require_schema().profile

    @property
    def reprompt(self) -> str:
        """Text shown after a rejected answer."""
        return self._require_schema().reprompt

    @property
    def section_sizes(self) -> list[int]:
        """Question count per section, in section order."""
        return [len(self.sections[sid].questions) for sid in self.section_order]

    @property
    def total_questions(self) -> int:
        """Sum of question counts across all sections."""
        return sum(self.section_sizes)

    def get_section(self, section_id: str) -> Section:
        """Look up a section by id.

        Raises:
            KeyError: if the section is not found.
        """
        return self.sections[section_id]

    def section_at(self, index: int) -> Section:
        """Return the section at position *index* in the flow order.

        Raises:
            IndexError: if the index is out of range.
        """
        if index < 0:
            raise IndexError(f"Section index out of range: {index}")
        return self.sections[self.section_order[index]]

    def index_of(self, section_id: str) -> int:
        """Position of *section_id* in the flow order.

        Raises:
            KeyError: if the section is not found.
        """
        try:
            return self.section_order.index(section_id)
        except ValueError:
            raise KeyError(section_id) from None

    def get_question(self, section_index: int, question_index: int) -> Question:
        """Look up a question by position.

        Raises:
            IndexError: if either index is out of range.
        """
        questions = self.section_at(section_index).questions
        if question_index < 0:
            raise IndexError(f"Question index out of range: {question_index}")
        return questions[question_index]

    def questions_before(self, section_index: int) -> int:
        """Number of questions in all sections strictly before *section_index*."""
        return sum(self.section_sizes[:section_index])

    def _require_schema(self) -> FlowSchema:
        if self.schema is None:
            raise ValueError("SchemaRegistry not loaded; call load() first")
        return self.schema
