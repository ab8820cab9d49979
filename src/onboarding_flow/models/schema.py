"""Flow schema models — sections and the whole flow definition.

A flow definition (``flows/v1.yaml``) has four top-level keys:

    version   — schema version string
    reprompt  — text shown after a rejected answer
    profile   — category → field → default value
    sections  — ordered list of sections, each with ordered questions

Uniqueness of section ids and of question ids within a section is checked
here, at construction time.
"""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, Field, model_validator

from onboarding_flow.constants import DEFAULT_REPROMPT

from .question import Question


class Section(BaseModel):
    """An ordered group of questions shown under one banner."""

    id: str
    icon: str = ""
    title: str
    description: str = ""
    questions: List[Question]

    @model_validator(mode="after")
    def _chk(self):
        if not self.questions:
            raise ValueError(f"section '{self.id}' has no questions")
        seen: set[str] = set()
        for q in self.questions:
            if q.id in seen:
                raise ValueError(f"duplicate question id '{q.id}' in section '{self.id}'")
            seen.add(q.id)
        return self


class FlowSchema(BaseModel):
    """A complete onboarding flow: profile defaults plus ordered sections."""

    version: str = "v1"
    reprompt: str = DEFAULT_REPROMPT
    profile: dict[str, dict[str, Any]]
    sections: List[Section] = Field(min_length=1)

    @model_validator(mode="after")
    def _chk(self):
        seen: set[str] = set()
        for section in self.sections:
            if section.id in seen:
                raise ValueError(f"duplicate section id '{section.id}'")
            seen.add(section.id)

            # Every stored field must exist in the profile defaults
            for q in section.questions:
                if q.field_path is None:
                    continue
                fields = self.profile.get(q.category)
                if fields is None or q.field_name not in fields:
                    raise ValueError(
                        f"question '{section.id}/{q.id}' writes unknown profile field "
                        f"'{q.field_path}'"
                    )
        return self
