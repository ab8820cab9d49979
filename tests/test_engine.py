"""FlowController tests against the packaged v1 flow.

Collaborators are test doubles:
  - RecordingPresenter records display calls and holds intro auto-advance
    callbacks until ``presenter.fire()`` (the timer elapsing)
  - MockPersistence records saves and can be told to fail

Background saves are fire-and-forget, so tests ``await controller.drain()``
before inspecting what was stored.
"""

import pytest

from onboarding_flow.engine import FlowController
from onboarding_flow.errors import MalformedStoredState
from onboarding_flow.models.state import FlowStatus
from onboarding_flow.profile import default_profile

from helpers.fakes import (
    FIXED_NOW,
    HAPPY_ANSWERS,
    MockPersistence,
    RecordingPresenter,
    advance_to,
    run_to_completion,
)


def _make(registry, persistence=None, presenter=None):
    presenter = presenter or RecordingPresenter()
    controller = FlowController(
        registry, presenter, user_id="u1", persistence=persistence, clock=lambda: FIXED_NOW,
    )
    return controller, presenter


# =====================================================================
# Start
# =====================================================================


class TestStart:
    """Starting a run presents the greeting and waits for a name."""

    @pytest.mark.asyncio
    async def test_start_awaits_name(self, controller, presenter):
        await controller.start()

        assert controller.status is FlowStatus.awaiting_input
        question = controller.get_current_question()
        assert question.id == "greeting"
        assert question.section_id == "life"
        assert presenter.messages[0].startswith("Good morning! I'm excited")
        assert presenter.of_kind("affordance") == ["text"]
        assert presenter.last_progress == 0

    @pytest.mark.asyncio
    async def test_no_question_before_start(self, controller):
        assert controller.status is FlowStatus.idle
        assert controller.get_current_question() is None

    @pytest.mark.asyncio
    async def test_fresh_profile_has_defaults_and_timezone(self, controller, registry):
        await controller.start()
        profile = controller.profile
        assert profile["diet"]["mealsPerDay"] == "3"
        assert profile["life"]["fullName"] == ""
        assert profile["life"]["timezone"] == default_profile(registry.profile_defaults)["life"]["timezone"]
        assert profile["life"]["timezone"] != ""

    @pytest.mark.asyncio
    async def test_stored_profile_is_merged(self, registry):
        stored = {
            "life": {"fullName": "Old Name", "age": "forty", "bogus": 1},
            "unknown": {"x": 1},
        }
        controller, _ = _make(registry, MockPersistence(profile=stored))
        await controller.start()

        profile = controller.profile
        assert profile["life"]["fullName"] == "Old Name"
        # Mistyped field keeps its default; unknown entries are dropped
        assert profile["life"]["age"] == 0
        assert "unknown" not in profile
        assert "bogus" not in profile["life"]

    @pytest.mark.asyncio
    async def test_stored_app_profile_is_folded_back(self, registry):
        app_profile = {
            "personal": {"fullName": "App Name", "city": "Denver"},
            "lifestyle": {"morningPerson": False, "workStyle": "remote"},
            "financial": {"salary": 90000, "savingsRate": 20},
        }
        controller, _ = _make(registry, MockPersistence(app_profile=app_profile))
        await controller.start()

        profile = controller.profile
        assert profile["life"]["fullName"] == "App Name"
        assert profile["life"]["city"] == "Denver"
        assert profile["life"]["morningPerson"] == "night"
        assert profile["life"]["workStyle"] == "remote"
        assert profile["financial"]["salary"] == 90000

    @pytest.mark.asyncio
    async def test_position_is_never_restored(self, registry):
        persistence = MockPersistence(profile={"life": {"fullName": "Old Name"}})
        controller, _ = _make(registry, persistence)
        await controller.start()

        state = controller.state
        assert state.current_section_index == 0
        assert state.current_question_index == 0
        assert state.completed_section_ids == set()

    @pytest.mark.asyncio
    async def test_malformed_storage_falls_back_to_defaults(self, registry):
        persistence = MockPersistence(load_error=MalformedStoredState("not json"))
        controller, _ = _make(registry, persistence)
        await controller.start()

        assert controller.profile == default_profile(registry.profile_defaults)
        assert controller.status is FlowStatus.awaiting_input

    @pytest.mark.asyncio
    async def test_unexpected_load_error_falls_back_to_defaults(self, registry):
        persistence = MockPersistence(load_error=RuntimeError("connection reset"))
        controller, _ = _make(registry, persistence)
        await controller.start()
        assert controller.profile["life"]["fullName"] == ""

    @pytest.mark.asyncio
    async def test_storage_loaded_once(self, controller, persistence):
        await controller.start()
        await controller.start()
        assert persistence.loads == 1

    @pytest.mark.asyncio
    async def test_runs_without_persistence(self, registry):
        controller, _ = _make(registry, persistence=None)
        await controller.start()
        outcome = await controller.submit_answer("Jane Doe")
        assert outcome.type == "accepted"
        await controller.drain()


# =====================================================================
# Answers
# =====================================================================


class TestAnswers:
    """submit_answer: accept, reject, ignore."""

    @pytest.mark.asyncio
    async def test_name_accepted(self, controller, presenter):
        await controller.start()
        outcome = await controller.submit_answer("  Jane Doe  ")

        assert outcome.type == "accepted"
        assert outcome.value == "Jane Doe"
        assert outcome.response == "Nice to meet you, **Jane**! Great name."
        assert controller.profile["life"]["fullName"] == "Jane Doe"
        assert controller.state.current_question_index == 1
        assert controller.get_current_question().id == "birthdate"
        # floor(100 * 1 / 34)
        assert controller.get_progress_percent() == 2
        assert presenter.last_progress == 2

    @pytest.mark.asyncio
    async def test_blank_answer_rejected_with_reprompt(self, controller, presenter, registry):
        await controller.start()
        presenter.reset()

        outcome = await controller.submit_answer("   ")

        assert outcome.type == "rejected"
        assert outcome.reason == "blank"
        assert presenter.messages == [registry.reprompt]
        # Affordance cleared, then shown again after the reprompt
        assert presenter.calls[-1] == ("affordance", "text")
        assert controller.state.current_question_index == 0
        assert controller.profile["life"]["fullName"] == ""
        assert controller.status is FlowStatus.awaiting_input

    @pytest.mark.asyncio
    async def test_too_short_name_rejected(self, controller):
        await controller.start()
        outcome = await controller.submit_answer("J")
        assert outcome.type == "rejected"
        assert outcome.reason == "validation"

    @pytest.mark.asyncio
    async def test_birthdate_derives_age(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "birthdate")

        outcome = await controller.submit_answer("March 15, 1990")

        assert outcome.type == "accepted"
        assert controller.profile["life"]["birthdate"] == "1990-03-15"
        assert controller.profile["life"]["age"] == 36
        assert outcome.response == "Got it! So you're **36 years old**. The prime of your life!"

    @pytest.mark.asyncio
    async def test_unparseable_birthdate_rejected(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "birthdate")

        outcome = await controller.submit_answer("a while ago")

        assert outcome.type == "rejected"
        assert outcome.reason == "parse"
        assert controller.profile["life"]["birthdate"] == ""

    @pytest.mark.asyncio
    async def test_future_birthdate_rejected(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "birthdate")

        outcome = await controller.submit_answer("2030-01-01")

        assert outcome.type == "rejected"
        assert controller.profile["life"]["age"] == 0
        assert controller.get_current_question().id == "birthdate"

    @pytest.mark.asyncio
    async def test_location_stores_city_and_state(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "location")

        outcome = await controller.submit_answer("Austin, TX")

        assert outcome.response == "Austin! Keep it weird! Awesome city."
        assert controller.profile["life"]["city"] == "Austin"
        assert controller.profile["life"]["state"] == "TX"

    @pytest.mark.asyncio
    async def test_unknown_choice_rejected(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "workStyle")

        outcome = await controller.submit_answer("moon base")

        assert outcome.type == "rejected"
        assert presenter.calls[-1] == ("affordance", "choice")

    @pytest.mark.asyncio
    async def test_slider_without_value_takes_default(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "stressLevel")

        outcome = await controller.submit_answer(None)

        assert outcome.type == "accepted"
        assert outcome.value == 5
        assert controller.profile["health"]["stressLevel"] == 5

    @pytest.mark.asyncio
    async def test_weight_without_number_rejected(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "weight")

        outcome = await controller.submit_answer("heavy")

        assert outcome.type == "rejected"
        assert controller.profile["health"]["currentWeight"] == 0

    @pytest.mark.asyncio
    async def test_unparseable_salary_stored_as_zero(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "salary")

        outcome = await controller.submit_answer("abc")

        assert outcome.type == "accepted"
        assert outcome.value == 0
        assert outcome.response == "No worries, we can skip this one!"

    @pytest.mark.asyncio
    async def test_answer_during_intro_ignored(self, controller, presenter):
        await controller.start()
        await controller.jump_to_section("health")
        assert controller.status is FlowStatus.presenting

        outcome = await controller.submit_answer("hello")

        assert outcome.type == "ignored"
        assert controller.get_current_question().id == "health_intro"

    @pytest.mark.asyncio
    async def test_each_accepted_answer_is_saved(self, controller, persistence):
        await controller.start()
        await controller.submit_answer("Jane Doe")
        await controller.drain()

        assert len(persistence.saves) == 1
        profile, state = persistence.saves[0]
        assert profile["life"]["fullName"] == "Jane Doe"
        assert state.current_question_index == 1

    @pytest.mark.asyncio
    async def test_save_failure_is_not_raised(self, registry):
        controller, _ = _make(registry, MockPersistence(fail_save=True))
        await controller.start()
        outcome = await controller.submit_answer("Jane Doe")
        await controller.drain()
        assert outcome.type == "accepted"


# =====================================================================
# Skipping optional questions
# =====================================================================


class TestSkipQuestion:

    @pytest.mark.asyncio
    async def test_optional_question_skipped(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "weight")

        outcome = await controller.skip_question()

        assert outcome.type == "skipped"
        assert controller.profile["health"]["currentWeight"] == 0
        assert controller.get_current_question().id == "stressLevel"

    @pytest.mark.asyncio
    async def test_required_question_not_skipped(self, controller):
        await controller.start()
        outcome = await controller.skip_question()

        assert outcome.type == "rejected"
        assert outcome.reason == "not optional"
        assert controller.get_current_question().id == "greeting"


# =====================================================================
# Intros and auto-advance
# =====================================================================


class TestAutoAdvance:

    @pytest.mark.asyncio
    async def test_section_end_shows_banner_then_intro(self, controller, presenter):
        await controller.start()
        await advance_to(controller, presenter, "livingWith")
        presenter.reset()

        await controller.submit_answer("partner")

        assert presenter.banners == ["health"]
        assert controller.status is FlowStatus.presenting
        assert controller.get_current_question().id == "health_intro"
        assert len(presenter.pending) == 1
        assert "life" in controller.state.completed_section_ids

    @pytest.mark.asyncio
    async def test_timer_advances_past_intro(self, controller, presenter):
        await controller.start()
        await controller.jump_to_section("health")

        await presenter.fire()

        assert controller.get_current_question().id == "exerciseFrequency"
        assert controller.status is FlowStatus.awaiting_input

    @pytest.mark.asyncio
    async def test_stale_timer_is_ignored(self, controller, presenter):
        await controller.start()
        await controller.jump_to_section("health")
        stale = presenter.pending[0]
        await controller.jump_to_section("diet")
        current = presenter.pending[-1]

        await stale()
        assert controller.get_current_question().id == "diet_intro"

        await current()
        assert controller.get_current_question().id == "dietType"

    @pytest.mark.asyncio
    async def test_auto_advance_ignored_while_awaiting_input(self, controller):
        await controller.start()
        await controller.auto_advance()
        assert controller.get_current_question().id == "greeting"


# =====================================================================
# Navigation
# =====================================================================


class TestNavigation:

    @pytest.mark.asyncio
    async def test_jump_to_financial(self, controller, presenter, persistence):
        await controller.start()
        presenter.reset()

        assert await controller.jump_to_section("financial") is True

        state = controller.state
        assert state.current_section_index == 3
        assert state.current_question_index == 0
        assert "life" in state.completed_section_ids
        assert presenter.banners == ["financial"]
        assert ("clear", None) in presenter.calls
        # floor(100 * 21 / 34)
        assert controller.get_progress_percent() == 61
        await controller.drain()
        assert persistence.saves[-1][1].current_section_index == 3

    @pytest.mark.asyncio
    async def test_jump_to_unknown_section_is_noop(self, controller, presenter):
        await controller.start()
        presenter.reset()

        assert await controller.jump_to_section("hobbies") is False

        assert controller.state.current_section_index == 0
        assert controller.state.completed_section_ids == set()
        assert presenter.calls == []

    @pytest.mark.asyncio
    async def test_jump_backwards_lowers_progress(self, controller, presenter):
        await controller.start()
        await controller.jump_to_section("goals")
        high = controller.get_progress_percent()
        await controller.jump_to_section("health")
        assert controller.get_progress_percent() < high
        assert controller.state.completed_section_ids == {"life", "goals"}

    @pytest.mark.asyncio
    async def test_skip_section(self, controller, presenter):
        await controller.start()
        await controller.skip()

        assert controller.state.completed_section_ids == {"life"}
        assert controller.state.current_section_index == 1
        assert presenter.banners == ["health"]
        assert controller.get_current_question().id == "health_intro"

    @pytest.mark.asyncio
    async def test_skip_last_section_completes(self, controller, persistence):
        await controller.start()
        await controller.jump_to_section("goals")
        await controller.skip()
        await controller.drain()

        assert controller.status is FlowStatus.complete
        assert controller.get_progress_percent() == 100
        assert len(persistence.app_saves) == 1


# =====================================================================
# Completion
# =====================================================================


class TestCompletion:

    @pytest.mark.asyncio
    async def test_full_run(self, controller, presenter, persistence):
        received = []
        controller.on_complete(received.append)
        await controller.start()

        await run_to_completion(controller, presenter)
        await controller.drain()

        assert controller.status is FlowStatus.complete
        assert controller.get_current_question() is None
        assert controller.get_progress_percent() == 100
        assert presenter.last_progress == 100
        assert presenter.messages[-1].startswith("**Jane, you're amazing!**")
        assert presenter.banners == ["health", "diet", "financial", "goals"]
        assert controller.state.completed_section_ids == {"life", "health", "diet", "financial", "goals"}

        profile = controller.profile
        assert profile["life"]["age"] == 36
        assert profile["life"]["morningPerson"] == "morning"
        assert profile["health"]["currentWeight"] == 150
        assert profile["health"]["weightUnit"] == "lbs"
        assert profile["financial"]["salary"] == 75000
        assert profile["diet"]["allergies"] == ["none"]
        assert profile["goals"]["oneYearGoals"] == ["Run a marathon"]

        assert len(received) == 1
        app = received[0]
        assert app["onboardingComplete"] is True
        assert app["personal"]["fullName"] == "Jane Doe"
        assert app["personal"]["state"] == "TX"
        assert app["lifestyle"]["morningPerson"] is True
        assert app["lifestyle"]["sleepHours"] == 8
        assert app["lifestyle"]["interests"] == ["travel_world", "learn_skills"]
        assert app["lifestyle"]["lifeGoals"] == ["Run a marathon"]
        assert app["financial"]["netWorth"] == 0
        assert persistence.app_saves == received

        last_profile, last_state = persistence.saves[-1]
        assert last_state.current_section_index == 4
        assert last_state.current_question_index == 6
        assert last_profile == profile

    @pytest.mark.asyncio
    async def test_async_completion_callback(self, controller, presenter):
        received = []

        async def publish(app_profile):
            received.append(app_profile["personal"]["fullName"])

        controller.on_complete(publish)
        await controller.start()
        await run_to_completion(controller, presenter)
        await controller.drain()

        assert received == ["Jane Doe"]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_block_others(self, controller, presenter):
        received = []

        def broken(app_profile):
            raise RuntimeError("boom")

        controller.on_complete(broken)
        controller.on_complete(received.append)
        await controller.start()
        await run_to_completion(controller, presenter)

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_answers_after_completion_ignored(self, controller, presenter):
        await controller.start()
        await run_to_completion(controller, presenter)

        outcome = await controller.submit_answer("more")
        assert outcome.type == "ignored"

    @pytest.mark.asyncio
    async def test_jump_after_completion_reopens_section(self, controller, presenter):
        await controller.start()
        await run_to_completion(controller, presenter)

        assert await controller.jump_to_section("diet") is True
        assert controller.status is FlowStatus.presenting
        assert controller.get_current_question().id == "diet_intro"
        # Answers survive
        assert controller.profile["life"]["fullName"] == "Jane Doe"


# =====================================================================
# Restart / abandon
# =====================================================================


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_restart_clears_everything(self, controller, persistence):
        await controller.start()
        await controller.submit_answer("Jane Doe")

        await controller.restart()

        assert persistence.cleared == ["u1"]
        assert controller.profile["life"]["fullName"] == ""
        assert controller.state.current_question_index == 0
        assert controller.status is FlowStatus.awaiting_input

    @pytest.mark.asyncio
    async def test_abandon_flushes_and_closes(self, controller, persistence, presenter):
        await controller.start()
        await controller.submit_answer("Jane Doe")
        await controller.jump_to_section("health")

        await controller.abandon()

        assert controller.closed
        assert persistence.saves[-1][0]["life"]["fullName"] == "Jane Doe"
        assert persistence.saves[-1][1].current_section_index == 1
        # Timers and events after abandon do nothing
        await presenter.fire()
        assert controller.get_current_question().id == "health_intro"
        assert (await controller.submit_answer("x")).type == "ignored"
        assert await controller.jump_to_section("diet") is False

    @pytest.mark.asyncio
    async def test_start_after_abandon_reopens(self, controller):
        await controller.start()
        await controller.abandon()
        await controller.start()
        assert not controller.closed
        assert controller.status is FlowStatus.awaiting_input


# =====================================================================
# Views
# =====================================================================


class TestViews:

    @pytest.mark.asyncio
    async def test_profile_view_is_a_copy(self, controller):
        await controller.start()
        view = controller.profile
        view["life"]["fullName"] = "Mallory"
        assert controller.profile["life"]["fullName"] == ""

    @pytest.mark.asyncio
    async def test_slider_payload_constraints(self, controller, presenter):
        await controller.start()
        payload = await advance_to(controller, presenter, "savingsRate")

        assert payload.type == "slider"
        assert payload.constraints == {
            "min": 0, "max": 50, "default": 10, "labels": {"min": "0%", "max": "50%+"},
        }
        assert ("affordance", ("slider", 0, 50, 10)) in presenter.calls

    @pytest.mark.asyncio
    async def test_choice_payload_options(self, controller, presenter):
        await controller.start()
        payload = await advance_to(controller, presenter, "mealsPerDay")
        assert [o["value"] for o in payload.options] == ["1-2", "3", "4-5", "grazing"]

    @pytest.mark.asyncio
    async def test_progress_never_drops_on_forward_answers(self, controller, presenter):
        await controller.start()
        seen = [controller.get_progress_percent()]
        for _ in range(200):
            if controller.status is FlowStatus.complete:
                break
            if presenter.pending:
                await presenter.fire()
                continue
            question = controller.get_current_question()
            outcome = await controller.submit_answer(HAPPY_ANSWERS[question.id])
            assert outcome.type == "accepted"
            seen.append(controller.get_progress_percent())

        assert controller.status is FlowStatus.complete
        assert seen == sorted(seen)
        assert seen[-1] == 100


# =====================================================================
# Save ordering
# =====================================================================


class TestSaveOrdering:

    @pytest.mark.asyncio
    async def test_slow_save_does_not_overwrite_newer_one(self, registry):
        persistence = MockPersistence(first_save_delay=0.05)
        controller, _ = _make(registry, persistence)
        await controller.start()

        await controller.submit_answer("Jane Doe")
        await controller.submit_answer("March 15, 1990")
        await controller.drain()

        assert [p["life"]["birthdate"] for p, _ in persistence.saves] == ["", "1990-03-15"]
        stored, state = persistence.saves[-1]
        assert stored["life"]["birthdate"] == controller.profile["life"]["birthdate"]
        assert state.current_question_index == 2

    @pytest.mark.asyncio
    async def test_completion_save_lands_last(self, registry):
        persistence = MockPersistence(first_save_delay=0.05)
        controller, presenter = _make(registry, persistence)
        await controller.start()

        await run_to_completion(controller, presenter)
        await controller.drain()

        _, state = persistence.saves[-1]
        assert state.current_section_index == 4
        assert state.current_question_index == 6
        assert len(persistence.app_saves) == 1

    @pytest.mark.asyncio
    async def test_restart_clears_after_pending_saves(self, registry):
        persistence = MockPersistence(first_save_delay=0.05)
        controller, _ = _make(registry, persistence)
        await controller.start()
        await controller.submit_answer("Jane Doe")

        await controller.restart()

        # The delayed save finished before storage was cleared
        assert len(persistence.saves) == 1
        assert persistence.cleared == ["u1"]
