"""Flow state and result models — the contract between the controller and its host.

These models are intentionally decoupled from the ORM models in
``onboarding_db`` so that hosts never see database internals.

  - FlowState: position within the flow (what gets persisted)
  - FlowStatus: which state of the state machine the controller is in
  - QuestionPayload: flattened question for rendering/API consumers
  - AnswerOutcome: what happened to a submitted answer
"""

import enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class FlowStatus(str, enum.Enum):
    """Controller state machine states."""

    idle = "idle"
    presenting = "presenting"
    awaiting_input = "awaiting_input"
    transitioning = "transitioning"
    complete = "complete"


class FlowState(BaseModel):
    """Position within the flow.

    ``current_question_index`` may equal the length of the current section
    only momentarily (before the controller moves on) or once the flow has
    completed on the last section.
    """

    current_section_index: int = 0
    current_question_index: int = 0
    completed_section_ids: set[str] = Field(default_factory=set)


class QuestionPayload(BaseModel):
    """Flattened question for presenters and API consumers.

    Strips parser/validation/response details and presents only what the UI
    needs to render the question.
    """

    id: str
    section_id: str
    type: str
    message: str
    field_path: str | None = None
    optional: bool = False
    # [{value, label}] for choice/multiselect
    options: list[dict] | None = None
    # {min, max, default, labels} for slider
    constraints: dict | None = None


class AnswerOutcome(BaseModel):
    """Result of submitting (or skipping) an answer.

    ``type`` is:
      - "accepted": stored (if the question owns a field) and advanced
      - "rejected": invalid; profile and position unchanged
      - "skipped": optional question advanced without storing
      - "ignored": nothing was awaiting input
    """

    type: Literal["accepted", "rejected", "skipped", "ignored"]
    question_id: str | None = None
    value: Any = None
    response: str | None = None
    reason: str | None = None
