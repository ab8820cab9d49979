"""Onboarding endpoints — drive one user's conversation step by step.

Every mutating endpoint returns a :class:`StepResponse`: the events the
presenter collected while the controller handled the call (messages,
section banners, affordances, progress) plus a snapshot of where the run
now stands.  Pure intros are advanced before responding, so the client
always receives a step that is either awaiting input or complete.

``start`` must be called before the other endpoints; they answer 409
otherwise.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from onboarding_flow.models.state import AnswerOutcome, FlowStatus, QuestionPayload
from onboarding_flow.profile import to_app_profile

from onboarding_server.dependencies import get_sessions, get_user_id
from onboarding_server.sessions import Run, SessionRegistry

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class AnswerRequest(BaseModel):
    """Body for POST /onboarding/answer.

    ``value`` is text, an option value, a list of option values, or an
    integer, depending on the current question.  A missing slider value
    takes the slider's default.
    """
    value: Any = None


class JumpRequest(BaseModel):
    """Body for POST /onboarding/jump."""
    section_id: str


class StepResponse(BaseModel):
    """What the client should render after a call."""
    status: FlowStatus
    section_id: str | None = None
    progress: int
    question: QuestionPayload | None = None
    completed_sections: list[str] = []
    events: list[dict] = []
    outcome: AnswerOutcome | None = None


async def _step(run: Run, outcome: AnswerOutcome | None = None) -> StepResponse:
    """Advance past pending intros, then snapshot the run."""
    await run.presenter.fire_pending()
    controller = run.controller
    state = controller.state
    return StepResponse(
        status=controller.status,
        section_id=controller.current_section.id,
        progress=controller.get_progress_percent(),
        question=controller.get_current_question(),
        completed_sections=sorted(state.completed_section_ids),
        events=run.presenter.take_events(),
        outcome=outcome,
    )


# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------

@router.post("/start")
async def start(
    user_id: str = Depends(get_user_id),
    sessions: SessionRegistry = Depends(get_sessions),
) -> StepResponse:
    """Start (or re-start from the top) the user's onboarding.

    Previously stored answers are loaded and kept; the conversation always
    begins at the first question.
    """
    run = await sessions.open(user_id)
    async with run.lock:
        await run.controller.start()
        return await _step(run)


@router.post("/restart")
async def restart(
    user_id: str = Depends(get_user_id),
    sessions: SessionRegistry = Depends(get_sessions),
) -> StepResponse:
    """Discard stored progress and every answer, then begin again."""
    run = await sessions.open(user_id)
    async with run.lock:
        await run.controller.restart()
        return await _step(run)


@router.post("/exit", status_code=204)
async def exit_onboarding(
    user_id: str = Depends(get_user_id),
    sessions: SessionRegistry = Depends(get_sessions),
) -> None:
    """Save progress and drop the live run.  404 if there is none."""
    if not await sessions.close(user_id):
        raise ValueError(f"Onboarding run not found for user {user_id}")


# ------------------------------------------------------------------
# Conversation
# ------------------------------------------------------------------

@router.get("/step")
async def get_step(
    user_id: str = Depends(get_user_id),
    sessions: SessionRegistry = Depends(get_sessions),
) -> StepResponse:
    """Return the current step without changing anything."""
    run = sessions.get(user_id)
    async with run.lock:
        return await _step(run)


@router.post("/answer")
async def submit_answer(
    body: AnswerRequest,
    user_id: str = Depends(get_user_id),
    sessions: SessionRegistry = Depends(get_sessions),
) -> StepResponse:
    """Submit an answer for the current question.

    A rejected answer comes back with ``outcome.type == "rejected"`` and the
    reprompt among the events; the question stays current.
    """
    run = sessions.get(user_id)
    async with run.lock:
        outcome = await run.controller.submit_answer(body.value)
        return await _step(run, outcome)


@router.post("/skip-question")
async def skip_question(
    user_id: str = Depends(get_user_id),
    sessions: SessionRegistry = Depends(get_sessions),
) -> StepResponse:
    """Skip the current question if it is optional."""
    run = sessions.get(user_id)
    async with run.lock:
        outcome = await run.controller.skip_question()
        return await _step(run, outcome)


# ------------------------------------------------------------------
# Navigation
# ------------------------------------------------------------------

@router.post("/jump")
async def jump_to_section(
    body: JumpRequest,
    user_id: str = Depends(get_user_id),
    sessions: SessionRegistry = Depends(get_sessions),
) -> StepResponse:
    """Jump to the first question of a section.  404 for unknown sections."""
    run = sessions.get(user_id)
    async with run.lock:
        if not await run.controller.jump_to_section(body.section_id):
            raise ValueError(f"Section not found: {body.section_id}")
        return await _step(run)


@router.post("/skip")
async def skip_section(
    user_id: str = Depends(get_user_id),
    sessions: SessionRegistry = Depends(get_sessions),
) -> StepResponse:
    """Treat the current section as finished and move to the next one."""
    run = sessions.get(user_id)
    async with run.lock:
        await run.controller.skip()
        return await _step(run)


# ------------------------------------------------------------------
# Profile
# ------------------------------------------------------------------

@router.get("/profile")
async def get_profile(
    user_id: str = Depends(get_user_id),
    sessions: SessionRegistry = Depends(get_sessions),
) -> dict:
    """Return the collected profile, plus the application profile once complete."""
    run = sessions.get(user_id)
    controller = run.controller
    profile = controller.profile
    complete = controller.status is FlowStatus.complete
    return {
        "status": controller.status,
        "profile": profile,
        "app_profile": to_app_profile(profile) if complete else None,
    }
