"""Public model re-exports for onboarding_flow.

Consumers should import from ``onboarding_flow.models`` rather than
reaching into sub-modules directly.
"""

# --- Conditions & responses ---
from onboarding_flow.models.condition import Condition, ResponseRule, ResponseSpec

# --- Questions ---
from onboarding_flow.models.question import (
    BaseQuestion,
    ChoiceQuestion,
    IntroQuestion,
    MultiSelectQuestion,
    Option,
    OutroQuestion,
    Question,
    SliderQuestion,
    TextQuestion,
    question_mapper,
)

# --- Schema ---
from onboarding_flow.models.schema import FlowSchema, Section

# --- Run state ---
from onboarding_flow.models.state import AnswerOutcome, FlowState, FlowStatus, QuestionPayload

__all__ = [
    "AnswerOutcome",
    "BaseQuestion",
    "ChoiceQuestion",
    "Condition",
    "FlowSchema",
    "FlowState",
    "FlowStatus",
    "IntroQuestion",
    "MultiSelectQuestion",
    "Option",
    "OutroQuestion",
    "Question",
    "QuestionPayload",
    "ResponseRule",
    "ResponseSpec",
    "Section",
    "SliderQuestion",
    "TextQuestion",
    "question_mapper",
]
