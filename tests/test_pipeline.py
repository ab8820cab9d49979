"""InputPipeline tests — parse → conform → validate → store → respond.

Questions are built inline so each test shows exactly the rules in play.
"""

import copy
from datetime import date

import pytest

from onboarding_flow.models.condition import Condition, ResponseSpec
from onboarding_flow.models.question import (
    ChoiceQuestion,
    IntroQuestion,
    MultiSelectQuestion,
    Option,
    SliderQuestion,
    TextQuestion,
)
from onboarding_flow.pipeline import Accepted, InputPipeline, Rejected

TODAY = date(2026, 10, 17)


@pytest.fixture
def pipeline():
    return InputPipeline()


@pytest.fixture
def profile():
    return {
        "life": {"fullName": "", "birthdate": "", "age": 0, "city": "", "state": ""},
        "health": {"currentWeight": 0, "weightUnit": "lbs", "stressLevel": 5, "workoutTypes": []},
        "goals": {"oneYearGoals": []},
    }


def _opts(*values):
    return [Option(value=v, label=v.title()) for v in values]


# =====================================================================
# Text
# =====================================================================


class TestText:

    def test_accepts_and_stores(self, pipeline, profile):
        q = TextQuestion(
            id="name", message="Name?", field_path="life.fullName",
            validation=[Condition(op="min_length", value=2)],
            respond=ResponseSpec(default="Hi {{ value | first_name }}"),
        )
        result = pipeline.process(q, "Jane Doe", profile, today=TODAY)

        assert isinstance(result, Accepted)
        assert result.value == "Jane Doe"
        assert result.response == "Hi Jane"
        assert result.profile["life"]["fullName"] == "Jane Doe"

    def test_does_not_touch_callers_profile(self, pipeline, profile):
        before = copy.deepcopy(profile)
        q = TextQuestion(id="name", message="m", field_path="life.fullName")
        pipeline.process(q, "Jane", profile, today=TODAY)
        assert profile == before

    def test_blank_rejected(self, pipeline, profile):
        q = TextQuestion(id="name", message="m", field_path="life.fullName")
        assert pipeline.process(q, "   ", profile) == Rejected(reason="blank")

    def test_validation_failure(self, pipeline, profile):
        q = TextQuestion(
            id="name", message="m", field_path="life.fullName",
            validation=[Condition(op="min_length", value=2)],
        )
        assert pipeline.process(q, "J", profile) == Rejected(reason="validation")

    def test_non_text_rejected_without_parser(self, pipeline, profile):
        q = TextQuestion(id="name", message="m", field_path="life.fullName")
        assert pipeline.process(q, 42, profile) == Rejected(reason="expected text")

    def test_parse_failure(self, pipeline, profile):
        q = TextQuestion(id="dob", message="m", field_path="life.birthdate", parser="date")
        assert pipeline.process(q, "someday", profile, today=TODAY) == Rejected(reason="parse")

    def test_parser_siblings_stored(self, pipeline, profile):
        q = TextQuestion(
            id="dob", message="m", field_path="life.birthdate", parser="date",
            respond=ResponseSpec(default="{{ profile.life.age }}"),
        )
        result = pipeline.process(q, "1990-03-15", profile, today=TODAY)

        assert result.profile["life"]["birthdate"] == "1990-03-15"
        assert result.profile["life"]["age"] == 36
        # Response sees the committed profile, siblings included
        assert result.response == "36"

    def test_sibling_outside_category_skipped(self, pipeline):
        # No "state" field in this profile's life category
        profile = {"life": {"city": ""}}
        q = TextQuestion(id="loc", message="m", field_path="life.city", parser="location")
        result = pipeline.process(q, "Austin, TX", profile, today=TODAY)
        assert result.profile == {"life": {"city": "Austin"}}

    def test_weight_with_unit(self, pipeline, profile):
        q = TextQuestion(
            id="weight", message="m", field_path="health.currentWeight", parser="weight",
            validation=[Condition(op="gt", value=0)],
        )
        result = pipeline.process(q, "70 kg", profile, today=TODAY)
        assert result.profile["health"]["currentWeight"] == 70
        assert result.profile["health"]["weightUnit"] == "kg"

    def test_one_year_goal_is_list(self, pipeline, profile):
        q = TextQuestion(
            id="oneYear", message="m", field_path="goals.oneYearGoals", parser="as_list",
            validation=[Condition(op="items_min_length", value=3)],
        )
        result = pipeline.process(q, "Run a marathon", profile, today=TODAY)
        assert result.profile["goals"]["oneYearGoals"] == ["Run a marathon"]
        assert pipeline.process(q, "ok", profile, today=TODAY) == Rejected(reason="validation")

    def test_intro_without_field_stores_nothing(self, pipeline, profile):
        q = IntroQuestion(id="hello", message="Hello")
        result = pipeline.process(q, "hi", profile)
        assert isinstance(result, Accepted)
        assert result.profile == profile
        assert result.response is None


# =====================================================================
# Choice / multiselect
# =====================================================================


class TestChoice:

    @pytest.fixture
    def question(self):
        return ChoiceQuestion(
            id="style", message="m", field_path="life.city",
            options=_opts("remote", "office"),
            respond=ResponseSpec(by_value={"remote": "No commute!"}, default="Noted."),
        )

    def test_option_accepted(self, pipeline, profile, question):
        result = pipeline.process(question, "remote", profile)
        assert result.response == "No commute!"
        assert result.profile["life"]["city"] == "remote"

    def test_default_response(self, pipeline, profile, question):
        assert pipeline.process(question, "office", profile).response == "Noted."

    def test_unknown_option(self, pipeline, profile, question):
        assert pipeline.process(question, "moon", profile) == Rejected(reason="unknown option")

    def test_label_is_not_a_value(self, pipeline, profile, question):
        assert isinstance(pipeline.process(question, "Remote", profile), Rejected)


class TestMultiSelect:

    @pytest.fixture
    def question(self):
        return MultiSelectQuestion(
            id="workouts", message="m", field_path="health.workoutTypes",
            options=_opts("running", "yoga", "hiit"),
        )

    def test_selection_stored_without_duplicates(self, pipeline, profile, question):
        result = pipeline.process(question, ["yoga", "running", "yoga"], profile)
        assert result.value == ["yoga", "running"]
        assert result.profile["health"]["workoutTypes"] == ["yoga", "running"]

    def test_empty_selection_allowed(self, pipeline, profile, question):
        assert pipeline.process(question, [], profile).value == []

    def test_min_selected(self, pipeline, profile, question):
        question = question.model_copy(update={"min_selected": 1})
        assert pipeline.process(question, [], profile) == Rejected(reason="too few selected")

    def test_unknown_option(self, pipeline, profile, question):
        assert pipeline.process(question, ["running", "polo"], profile) == Rejected(reason="unknown option")

    def test_not_a_list(self, pipeline, profile, question):
        assert pipeline.process(question, "running", profile) == Rejected(reason="expected a list")


# =====================================================================
# Slider
# =====================================================================


class TestSlider:

    @pytest.fixture
    def question(self):
        return SliderQuestion(
            id="stress", message="m", field_path="health.stressLevel",
            min_value=1, max_value=10, default_value=5,
            respond=ResponseSpec(
                rules=[{"when": [{"op": "le", "value": 3}], "text": "Low"}],
                default="Not low",
            ),
        )

    def test_in_range(self, pipeline, profile, question):
        result = pipeline.process(question, 2, profile)
        assert result.value == 2
        assert result.response == "Low"

    def test_missing_value_takes_default(self, pipeline, profile, question):
        result = pipeline.process(question, None, profile)
        assert result.value == 5
        assert result.response == "Not low"

    def test_integral_float_accepted(self, pipeline, profile, question):
        assert pipeline.process(question, 7.0, profile).value == 7

    @pytest.mark.parametrize("raw", [0, 11, 2.5, True, "7"])
    def test_rejected(self, pipeline, profile, question, raw):
        assert isinstance(pipeline.process(question, raw, profile), Rejected)
