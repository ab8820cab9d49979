"""FlowController — the state machine driving one onboarding run.

The controller owns the run's profile and position.  It advances only on
discrete events: a submitted answer, a navigation command (jump/skip), or
the presenter's auto-advance timer firing for a pure intro.  Every
transition is logically instantaneous; pacing is the presenter's job.

States::

    idle ──start()──► presenting ──(needs input)──► awaiting_input
                        │  ▲                            │
           (pure intro, │  │ (accepted, more in         │ (rejected:
            timer fires)│  │  section)                  │  reprompt, stay)
                        ▼  │                            ▼
                      transitioning ◄──(section end)── accepted
                        │
                        └──(last section done / outro shown)──► complete

Decision table for the current question:

    | Question                 | Action                                   |
    |--------------------------|------------------------------------------|
    | intro without field_path | show message, schedule auto-advance      |
    | outro                    | show message, complete, notify callbacks |
    | anything else            | show message + affordance, await input   |

Persistence is fire-and-forget: saves run as background tasks and their
failures are logged, never raised.  ``abandon()`` is the one place that
waits for storage.
"""

from __future__ import annotations

import asyncio
import copy
import functools
import inspect
import logging
from datetime import datetime
from typing import Any, Callable, Coroutine

from onboarding_flow.errors import PersistenceFailure
from onboarding_flow.interfaces import PersistenceAdapter, Presenter
from onboarding_flow.models.question import (
    ChoiceQuestion,
    MultiSelectQuestion,
    OutroQuestion,
    Question,
    SliderQuestion,
)
from onboarding_flow.models.schema import Section
from onboarding_flow.models.state import AnswerOutcome, FlowState, FlowStatus, QuestionPayload
from onboarding_flow.pipeline import InputPipeline, Rejected
from onboarding_flow.profile import (
    Profile,
    default_profile,
    merge_app_profile,
    merge_profile,
    to_app_profile,
)
from onboarding_flow.progress import progress_percent
from onboarding_flow.registry import SchemaRegistry
from onboarding_flow.responders import ResponseRenderer, greeting_for

logger = logging.getLogger(__name__)

# Receives the application profile once the flow completes.  May return an
# awaitable, which is scheduled in the background.
CompletionCallback = Callable[[dict[str, Any]], Any]


class FlowController:
    """Runs one user's onboarding conversation.

    Args:
        registry: a loaded :class:`SchemaRegistry`
        presenter: surface that displays messages and affordances
        user_id: identifier passed to the persistence adapter
        persistence: optional adapter; without one the run is memory-only
        pipeline: input pipeline; a default one is created if omitted
        renderer: template renderer shared with the default pipeline
        clock: returns "now"; drives greetings and age computation
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        presenter: Presenter,
        *,
        user_id: str,
        persistence: PersistenceAdapter | None = None,
        pipeline: InputPipeline | None = None,
        renderer: ResponseRenderer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry
        self._presenter = presenter
        self._user_id = user_id
        self._persistence = persistence
        self._renderer = renderer or ResponseRenderer()
        self._pipeline = pipeline or InputPipeline(self._renderer)
        self._clock = clock or datetime.now

        self._profile: Profile = default_profile(registry.profile_defaults)
        self._state = FlowState()
        self._status = FlowStatus.idle
        self._loaded = False
        self._closed = False
        # Bumped on every presentation so stale auto-advance callbacks can
        # be recognised and dropped
        self._epoch = 0
        self._callbacks: list[CompletionCallback] = []
        self._pending: set[asyncio.Task] = set()
        # Background saves run one at a time, in the order they were scheduled
        self._save_lock = asyncio.Lock()

    # ==================================================================
    # Read-only views
    # ==================================================================

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def status(self) -> FlowStatus:
        return self._status

    @property
    def state(self) -> FlowState:
        """A copy of the current position."""
        return self._state.model_copy(deep=True)

    @property
    def profile(self) -> Profile:
        """A copy of the committed profile."""
        return copy.deepcopy(self._profile)

    @property
    def closed(self) -> bool:
        """True after :meth:`abandon` until the next start/restart."""
        return self._closed

    @property
    def current_section(self) -> Section:
        return self._registry.section_at(self._state.current_section_index)

    def get_progress_percent(self) -> int:
        """Completion percentage for the current position."""
        return progress_percent(self._registry, self._state)

    def get_current_question(self) -> QuestionPayload | None:
        """The question currently shown, or None before start / after completion."""
        question = self._current_question()
        if question is None or self._status in (FlowStatus.idle, FlowStatus.complete):
            return None
        return self._question_to_payload(question)

    def on_complete(self, callback: CompletionCallback) -> None:
        """Register a callback receiving the application profile on completion."""
        self._callbacks.append(callback)

    # ==================================================================
    # Run lifecycle
    # ==================================================================

    async def start(self) -> None:
        """Begin (or re-begin) the run at the first question.

        Stored profile data is loaded and merged on the first start only.
        The stored position is never restored: every run starts at the first
        section.  Calling ``start()`` again, e.g. after completion, walks the
        flow from the top while keeping the answers collected so far.
        """
        if not self._loaded:
            self._profile = await self._load_profile()
            self._loaded = True
        self._state = FlowState()
        self._closed = False
        logger.info("Onboarding started for user %s", self._user_id)
        self._present()

    async def restart(self) -> None:
        """Discard stored progress and all answers, then start fresh."""
        if self._persistence is not None:
            # Saves already scheduled must not land after the clear
            await self.drain()
            try:
                async with self._save_lock:
                    await self._persistence.clear(self._user_id)
            except Exception:
                logger.warning("Clearing onboarding progress for %s failed", self._user_id, exc_info=True)
        self._profile = default_profile(self._registry.profile_defaults)
        self._loaded = True
        self._state = FlowState()
        self._closed = False
        logger.info("Onboarding restarted for user %s", self._user_id)
        self._present()

    async def abandon(self) -> None:
        """Flush the current profile and position, then stop reacting to timers.

        Unlike every other save, this one is awaited: in-flight background
        saves finish first, then the latest snapshot is written.
        """
        self._closed = True
        self._epoch += 1
        await self.drain()
        if self._persistence is None:
            return
        try:
            async with self._save_lock:
                await self._persistence.save(self._user_id, self.profile, self.state)
        except Exception:
            logger.warning("Final save for %s failed", self._user_id, exc_info=True)
        logger.info("Onboarding abandoned for user %s at %d%%", self._user_id, self.get_progress_percent())

    async def drain(self) -> None:
        """Wait for background saves and completion callbacks to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ==================================================================
    # Events
    # ==================================================================

    async def submit_answer(self, raw: Any) -> AnswerOutcome:
        """Run a raw answer through the input pipeline and advance on success.

        Text answers are trimmed first.  A rejected answer leaves the profile
        and position untouched and re-shows the question's affordance after
        the reprompt.  Answers arriving while nothing awaits input are
        ignored.
        """
        question = self._current_question()
        if self._closed or self._status is not FlowStatus.awaiting_input or question is None:
            logger.info("Ignoring answer for user %s in state %s", self._user_id, self._status.value)
            return AnswerOutcome(type="ignored", question_id=question.id if question else None)

        if isinstance(raw, str):
            raw = raw.strip()

        self._presenter.clear_affordance()
        now = self._clock()
        result = self._pipeline.process(
            question, raw, self._profile, today=now.date(), greeting=greeting_for(now.hour),
        )

        if isinstance(result, Rejected):
            self._presenter.show_message(self._registry.reprompt)
            self._show_affordance(question)
            return AnswerOutcome(type="rejected", question_id=question.id, reason=result.reason)

        self._profile = result.profile
        if result.response:
            self._presenter.show_message(result.response)
        self._advance()
        if self._status is not FlowStatus.complete:
            self._schedule_save()
        return AnswerOutcome(
            type="accepted",
            question_id=question.id,
            value=copy.deepcopy(result.value),
            response=result.response,
        )

    async def skip_question(self) -> AnswerOutcome:
        """Move past an optional question without storing anything."""
        question = self._current_question()
        if self._closed or self._status is not FlowStatus.awaiting_input or question is None:
            return AnswerOutcome(type="ignored", question_id=question.id if question else None)
        if not question.optional:
            return AnswerOutcome(type="rejected", question_id=question.id, reason="not optional")

        self._presenter.clear_affordance()
        self._advance()
        if self._status is not FlowStatus.complete:
            self._schedule_save()
        return AnswerOutcome(type="skipped", question_id=question.id)

    async def auto_advance(self, epoch: int | None = None) -> None:
        """Advance past the pure intro currently shown.

        Called by the presenter when its intro timer fires.  *epoch* is the
        token captured when the intro was presented; callbacks for an intro
        that is no longer current are ignored.
        """
        if self._closed:
            return
        if epoch is not None and epoch != self._epoch:
            logger.debug("Dropping stale auto-advance (epoch %s, now %s)", epoch, self._epoch)
            return
        question = self._current_question()
        if self._status is not FlowStatus.presenting or question is None or question.needs_input:
            return
        self._advance()

    async def jump_to_section(self, section_id: str) -> bool:
        """Move to the first question of *section_id*.

        The section being left is marked completed even if unfinished, and
        any pending input is discarded.  Valid from any state, including
        after completion.

        Returns:
            False (and changes nothing) if the section does not exist.
        """
        if self._closed:
            return False
        try:
            target = self._registry.index_of(section_id)
        except KeyError:
            logger.warning("Jump to unknown section '%s' ignored", section_id)
            return False

        self._state.completed_section_ids.add(self.current_section.id)
        self._presenter.clear_affordance()
        self._state.current_section_index = target
        self._state.current_question_index = 0
        self._enter_section()
        self._schedule_save()
        return True

    async def skip(self) -> None:
        """Treat the current section as finished and move on."""
        if self._closed or self._status in (FlowStatus.idle, FlowStatus.complete):
            return
        self._presenter.clear_affordance()
        self._state.current_question_index = len(self.current_section.questions)
        self._finish_section()
        if self._status is not FlowStatus.complete:
            self._schedule_save()

    # ==================================================================
    # Transitions
    # ==================================================================

    def _present(self) -> None:
        """Show the current question and settle into the matching state."""
        self._epoch += 1
        question = self._current_question()
        if question is None:
            self._finish_section()
            return

        self._status = FlowStatus.presenting
        now = self._clock()
        self._presenter.show_message(
            self._renderer.render_message(question, self._profile, greeting=greeting_for(now.hour))
        )

        if isinstance(question, OutroQuestion):
            self._complete()
            return

        if not question.needs_input:
            # Pure intro: the presenter decides when to move on
            self._presenter.schedule_auto_advance(functools.partial(self.auto_advance, self._epoch))
        else:
            self._show_affordance(question)
            self._status = FlowStatus.awaiting_input
        self._presenter.update_progress(self.get_progress_percent())

    def _advance(self) -> None:
        self._state.current_question_index += 1
        if self._state.current_question_index < len(self.current_section.questions):
            self._present()
        else:
            self._finish_section()

    def _finish_section(self) -> None:
        section = self.current_section
        self._state.completed_section_ids.add(section.id)
        if self._state.current_section_index + 1 >= len(self._registry.section_order):
            self._complete()
            return
        self._state.current_section_index += 1
        self._state.current_question_index = 0
        self._enter_section()

    def _enter_section(self) -> None:
        self._status = FlowStatus.transitioning
        self._presenter.show_section_banner(self.current_section)
        self._present()

    def _complete(self) -> None:
        section = self.current_section
        self._state.completed_section_ids.add(section.id)
        self._state.current_question_index = len(section.questions)
        self._status = FlowStatus.complete
        self._presenter.update_progress(self.get_progress_percent())
        logger.info("Onboarding complete for user %s", self._user_id)

        app_profile = to_app_profile(self._profile)
        self._schedule_save()
        if self._persistence is not None:
            self._spawn(self._save_app_profile(copy.deepcopy(app_profile)))
        for callback in self._callbacks:
            try:
                result = callback(copy.deepcopy(app_profile))
            except Exception:
                logger.exception("Completion callback failed for user %s", self._user_id)
                continue
            if inspect.isawaitable(result):
                self._spawn(self._await_callback(result))

    # ==================================================================
    # Helpers
    # ==================================================================

    def _current_question(self) -> Question | None:
        questions = self.current_section.questions
        index = self._state.current_question_index
        if 0 <= index < len(questions):
            return questions[index]
        return None

    def _show_affordance(self, question: Question) -> None:
        if isinstance(question, ChoiceQuestion):
            self._presenter.show_choice_affordance(list(question.options))
        elif isinstance(question, MultiSelectQuestion):
            self._presenter.show_multiselect_affordance(list(question.options))
        elif isinstance(question, SliderQuestion):
            self._presenter.show_slider_affordance(
                question.min_value, question.max_value, question.default_value,
            )
        else:
            self._presenter.show_text_affordance()

    def _question_to_payload(self, question: Question) -> QuestionPayload:
        """Convert a typed Question model to a flat QuestionPayload."""
        now = self._clock()
        payload = QuestionPayload(
            id=question.id,
            section_id=self.current_section.id,
            type=question.type,
            message=self._renderer.render_message(
                question, self._profile, greeting=greeting_for(now.hour),
            ),
            field_path=question.field_path,
            optional=question.optional,
        )
        if isinstance(question, (ChoiceQuestion, MultiSelectQuestion)):
            payload.options = [{"value": o.value, "label": o.label} for o in question.options]
        elif isinstance(question, SliderQuestion):
            payload.constraints = {
                "min": question.min_value,
                "max": question.max_value,
                "default": question.default_value,
                "labels": question.labels,
            }
        return payload

    # ------------------------------------------------------------------
    # Persistence (best effort)
    # ------------------------------------------------------------------

    async def _load_profile(self) -> Profile:
        """Defaults merged with whatever the adapter has stored.

        Any failure falls back to the defaults for the part that failed.
        """
        profile = default_profile(self._registry.profile_defaults)
        if self._persistence is None:
            return profile

        try:
            stored = await self._persistence.load(self._user_id)
        except PersistenceFailure as exc:
            logger.warning("Discarding stored progress for %s: %s", self._user_id, exc)
            stored = None
        except Exception:
            logger.warning("Loading progress for %s failed", self._user_id, exc_info=True)
            stored = None
        profile = merge_profile(profile, stored)

        try:
            app_profile = await self._persistence.load_app_profile(self._user_id)
        except Exception:
            logger.warning("Loading app profile for %s failed", self._user_id, exc_info=True)
            app_profile = None
        if app_profile:
            profile = merge_app_profile(profile, app_profile)
        return profile

    def _schedule_save(self) -> None:
        if self._persistence is None:
            return
        self._spawn(self._save(self.profile, self.state))

    async def _save(self, profile: Profile, state: FlowState) -> None:
        try:
            async with self._save_lock:
                await self._persistence.save(self._user_id, profile, state)
        except Exception:
            logger.warning("Saving progress for %s failed", self._user_id, exc_info=True)

    async def _save_app_profile(self, app_profile: dict[str, Any]) -> None:
        try:
            async with self._save_lock:
                await self._persistence.save_app_profile(self._user_id, app_profile)
        except Exception:
            logger.warning("Saving app profile for %s failed", self._user_id, exc_info=True)

    async def _await_callback(self, awaitable: Any) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("Completion callback failed for user %s", self._user_id)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Run *coro* in the background, tracking it until it finishes."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; dropping background task")
            coro.close()
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
