"""Progress tracking — completion percentage from position and flow shape."""

from __future__ import annotations

from onboarding_flow.models.state import FlowState
from onboarding_flow.registry import SchemaRegistry


def completed_questions(registry: SchemaRegistry, state: FlowState) -> int:
    """Questions in all earlier sections plus the index within the current one."""
    return registry.questions_before(state.current_section_index) + state.current_question_index


def progress_percent(registry: SchemaRegistry, state: FlowState) -> int:
    """Whole-number completion percentage, rounded down.

    ``floor(100 * completed / total)``.  Jumping back to an earlier section
    lowers it; forward progress never does.
    """
    total = registry.total_questions
    if total == 0:
        return 0
    completed = completed_questions(registry, state)
    return max(0, min(100, (100 * completed) // total))
