"""onboarding_flow — Conversational onboarding flow engine.

Public API:
    FlowController    — state machine driving one user's onboarding run
    SchemaRegistry    — loads the flow YAML into typed models with lookup helpers
    InputPipeline     — parse → validate → store → respond for one answer
    ResponseRenderer  — Jinja2 rendering of messages and response tables
    progress_percent  — completion percentage for a position

Collaborator interfaces:
    Presenter          — ABC for the surface that shows the conversation
    PersistenceAdapter — ABC for loading/saving progress per user

Models:
    FlowState, FlowStatus, QuestionPayload, AnswerOutcome

Errors:
    InvalidInput, PersistenceFailure, MalformedStoredState
"""

from onboarding_flow.engine import FlowController
from onboarding_flow.errors import (
    InvalidInput,
    MalformedStoredState,
    OnboardingError,
    PersistenceFailure,
)
from onboarding_flow.interfaces import PersistenceAdapter, Presenter
from onboarding_flow.models.state import AnswerOutcome, FlowState, FlowStatus, QuestionPayload
from onboarding_flow.pipeline import Accepted, InputPipeline, Rejected
from onboarding_flow.profile import to_app_profile
from onboarding_flow.progress import progress_percent
from onboarding_flow.registry import SchemaRegistry
from onboarding_flow.responders import ResponseRenderer

__all__ = [
    # Engine & registry
    "FlowController",
    "SchemaRegistry",
    "InputPipeline",
    "ResponseRenderer",
    "progress_percent",
    "to_app_profile",
    # Pipeline results
    "Accepted",
    "Rejected",
    # Interfaces
    "Presenter",
    "PersistenceAdapter",
    # State models
    "AnswerOutcome",
    "FlowState",
    "FlowStatus",
    "QuestionPayload",
    # Errors
    "OnboardingError",
    "InvalidInput",
    "PersistenceFailure",
    "MalformedStoredState",
]
