"""InputPipeline — parse → validate → store → respond for a single answer.

The pipeline is pure with respect to the profile it is given: it works on a
deep copy and hands the new profile back inside :class:`Accepted`.  A
rejection never touches the caller's profile.

Stages::

    raw ──► parse ──► conform ──► validate ──► store ──► respond ──► Accepted
              │          │            │
              └──────────┴────────────┴──────────────────────────► Rejected

  1. **parse**: run the question's named parser.  ``None`` (the invalid
     sentinel) rejects.  Without a parser the raw value passes through.
  2. **conform**: affordance-driven types must match their shape (choice
     value in the option set, multiselect a list of option values, slider
     an integer in range; a missing slider value takes the default).
  3. **validate**: every declared condition must hold.
  4. **store**: write the value at ``field_path`` (full replacement) along
     with any parser-derived sibling fields in the same category.
  5. **respond**: render the response against the committed profile.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Union

from onboarding_flow.errors import InvalidInput
from onboarding_flow.evaluator import ConditionEvaluator
from onboarding_flow.models.question import (
    BaseQuestion,
    ChoiceQuestion,
    MultiSelectQuestion,
    SliderQuestion,
)
from onboarding_flow.parsers import ParsedAnswer, get_parser
from onboarding_flow.profile import Profile, set_path
from onboarding_flow.responders import ResponseRenderer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Accepted:
    """The answer was stored; ``profile`` is the new committed profile."""

    value: Any
    response: str | None
    profile: Profile


@dataclass(frozen=True)
class Rejected:
    """The answer was invalid; nothing changed."""

    reason: str


PipelineResult = Union[Accepted, Rejected]


class InputPipeline:
    """Runs one raw answer through parse/validate/store/respond.

    Args:
        renderer: response renderer; a default one is created if omitted.
        evaluator: condition evaluator shared with the renderer.
    """

    def __init__(
        self,
        renderer: ResponseRenderer | None = None,
        evaluator: ConditionEvaluator | None = None,
    ) -> None:
        self._evaluator = evaluator or ConditionEvaluator()
        self._renderer = renderer or ResponseRenderer(self._evaluator)

    def process(
        self,
        question: BaseQuestion,
        raw: Any,
        profile: Profile,
        *,
        today: date | None = None,
        greeting: str = "",
    ) -> PipelineResult:
        """Process a raw answer for *question*.

        Args:
            question: the question being answered
            raw: the raw answer (text, option value, list, or integer)
            profile: the current committed profile (not modified)
            today: reference date for derived fields such as age
            greeting: time-of-day greeting exposed to response templates

        Returns:
            :class:`Accepted` or :class:`Rejected`.
        """
        try:
            parsed = self._parse(question, raw, today or date.today())
            value = self._conform(question, parsed.value)
            self._validate(question, value, profile)
        except InvalidInput as exc:
            logger.debug("Rejected answer for %s: %s", question.id, exc.reason)
            return Rejected(reason=exc.reason)

        new_profile = self._store(question, value, parsed.siblings, profile)
        response = self._renderer.render_response(
            question.respond, value, new_profile, greeting=greeting,
        )
        return Accepted(value=value, response=response, profile=new_profile)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _parse(self, question: BaseQuestion, raw: Any, today: date) -> ParsedAnswer:
        if isinstance(raw, str) and not raw.strip():
            raise InvalidInput(question.id, "blank")
        if question.parser is None:
            return ParsedAnswer(raw)
        parsed = get_parser(question.parser)(raw, today=today)
        if parsed is None:
            raise InvalidInput(question.id, "parse")
        return parsed

    def _conform(self, question: BaseQuestion, value: Any) -> Any:
        """Check the value has the shape the question's affordance produces."""
        if isinstance(question, ChoiceQuestion):
            if not isinstance(value, str) or value not in question.option_values:
                raise InvalidInput(question.id, "unknown option")
            return value

        if isinstance(question, MultiSelectQuestion):
            if not isinstance(value, list):
                raise InvalidInput(question.id, "expected a list")
            allowed = set(question.option_values)
            if any(not isinstance(v, str) or v not in allowed for v in value):
                raise InvalidInput(question.id, "unknown option")
            # Keep first occurrence order, drop repeats
            value = list(dict.fromkeys(value))
            if len(value) < question.min_selected:
                raise InvalidInput(question.id, "too few selected")
            return value

        if isinstance(question, SliderQuestion):
            if value is None:
                return question.default_value
            # bool is a subclass of int in Python, so reject it explicitly
            if isinstance(value, bool) or not isinstance(value, int):
                if isinstance(value, float) and value.is_integer():
                    value = int(value)
                else:
                    raise InvalidInput(question.id, "expected an integer")
            if not question.min_value <= value <= question.max_value:
                raise InvalidInput(question.id, "out of range")
            return value

        # Free text without a parser must be a string
        if question.parser is None and not isinstance(value, str):
            raise InvalidInput(question.id, "expected text")
        return value

    def _validate(self, question: BaseQuestion, value: Any, profile: Profile) -> None:
        if not self._evaluator.all_hold(question.validation, value, profile):
            raise InvalidInput(question.id, "validation")

    def _store(
        self,
        question: BaseQuestion,
        value: Any,
        siblings: dict[str, Any],
        profile: Profile,
    ) -> Profile:
        new_profile = copy.deepcopy(profile)
        if question.field_path is None:
            return new_profile

        set_path(new_profile, question.field_path, copy.deepcopy(value))

        category = new_profile[question.category]
        for name, sibling in siblings.items():
            if name == question.field_name:
                logger.warning("Parser sibling %s would overwrite %s; skipped", name, question.field_path)
                continue
            if name not in category:
                logger.warning("Parser sibling %s.%s is not a profile field; skipped", question.category, name)
                continue
            category[name] = sibling
        return new_profile
