"""Question type models for onboarding flows.

Each question type maps to one input affordance on the presenting surface:

  Conversational (no affordance of their own):
    - intro: a message.  Without ``field_path`` it is auto-advanced by the
      presenter's timer; with ``field_path`` it collects free text (the
      opening "What's your name?" question)
    - outro: the closing message; reaching it completes the flow

  Answer-collecting:
    - text: free-text input, optionally run through a named parser
    - choice: pick exactly one option
    - multiselect: pick zero or more options, then confirm
    - slider: integer within [min_value, max_value]

The discriminated ``Question`` union uses ``type`` as its discriminator.
The ``question_mapper`` dict maps type strings to their Pydantic classes.
"""

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from .condition import Condition, ResponseSpec


# --- Shared option model ---

class Option(BaseModel):
    """A selectable option with a stored value and a display label."""

    value: str
    label: str


# --- Base question type ---

class BaseQuestion(BaseModel):
    """Fields shared by all question types.

    ``message`` and every response text are Jinja2 templates rendered with
    ``profile`` (read-only) and ``greeting`` in scope.
    """

    id: str
    message: str
    # "category.field" in the profile; None means the answer is never stored
    field_path: Optional[str] = None
    # Name of a registered parser (see onboarding_flow.parsers.PARSERS)
    parser: Optional[str] = None
    validation: List[Condition] = Field(default_factory=list)
    respond: Optional[ResponseSpec] = None
    # Optional questions may be skipped without storing anything
    optional: bool = False

    @model_validator(mode="after")
    def _chk_field_path(self):
        if self.field_path is not None:
            parts = self.field_path.split(".")
            if len(parts) != 2 or not all(parts):
                raise ValueError(
                    f"field_path must look like 'category.field', got '{self.field_path}'"
                )
        return self

    @property
    def category(self) -> str | None:
        """Profile category this question writes to, if any."""
        if self.field_path is None:
            return None
        return self.field_path.split(".")[0]

    @property
    def field_name(self) -> str | None:
        """Profile field (within :attr:`category`) this question writes to."""
        if self.field_path is None:
            return None
        return self.field_path.split(".")[1]

    @property
    def needs_input(self) -> bool:
        """True if the question waits for a submitted answer."""
        return True


# --- Conversational question types ---

class IntroQuestion(BaseQuestion):
    """Introductory message; collects free text only when it owns a field."""

    type: Literal["intro"] = "intro"

    @property
    def needs_input(self) -> bool:
        return self.field_path is not None


class OutroQuestion(BaseQuestion):
    """Closing message.  Reaching it completes the flow."""

    type: Literal["outro"] = "outro"

    @model_validator(mode="after")
    def _chk(self):
        if self.field_path is not None:
            raise ValueError("outro questions cannot store a field")
        return self

    @property
    def needs_input(self) -> bool:
        return False


# --- Answer-collecting question types ---

class TextQuestion(BaseQuestion):
    """Free-text input."""

    type: Literal["text"] = "text"


class ChoiceQuestion(BaseQuestion):
    """Pick exactly one option."""

    type: Literal["choice"] = "choice"
    options: List[Option]

    @property
    def option_values(self) -> list[str]:
        return [o.value for o in self.options]


class MultiSelectQuestion(BaseQuestion):
    """Pick zero or more options and confirm."""

    type: Literal["multiselect"] = "multiselect"
    options: List[Option]
    min_selected: int = 0

    @property
    def option_values(self) -> list[str]:
        return [o.value for o in self.options]


class SliderQuestion(BaseQuestion):
    """Integer slider with min/max/default and optional end labels."""

    type: Literal["slider"] = "slider"
    min_value: int
    max_value: int
    default_value: Optional[int] = None
    # {"min": "...", "max": "..."} captions for the slider ends
    labels: Optional[dict[str, str]] = None

    @model_validator(mode="after")
    def _chk(self):
        if self.min_value >= self.max_value:
            raise ValueError("min_value must be < max_value")
        # Default to min_value if not explicitly provided
        if self.default_value is None:
            self.default_value = self.min_value
        if not self.min_value <= self.default_value <= self.max_value:
            raise ValueError("default_value must lie within [min_value, max_value]")
        return self


# --- Discriminated union of all question types ---

Question = Annotated[
    Union[
        IntroQuestion,
        OutroQuestion,
        TextQuestion,
        ChoiceQuestion,
        MultiSelectQuestion,
        SliderQuestion,
    ],
    Field(discriminator="type"),
]

# Maps type string → Pydantic class for dynamic deserialization from YAML.
question_mapper = {
    "intro": IntroQuestion,
    "outro": OutroQuestion,
    "text": TextQuestion,
    "choice": ChoiceQuestion,
    "multiselect": MultiSelectQuestion,
    "slider": SliderQuestion,
}
