"""ResponseRenderer — Jinja2 rendering of question messages and responses.

Every message and response text in a flow definition is a small Jinja2
template.  Templates see:

    value     — the accepted answer (responses only)
    profile   — the committed profile, read-only
    greeting  — "Good morning" / "Good afternoon" / "Good evening"

Templates run in an immutable sandbox, so a template can read the profile
but never modify it.
"""

from __future__ import annotations

import logging
from typing import Any

from jinja2.sandbox import ImmutableSandboxedEnvironment

from onboarding_flow.evaluator import ConditionEvaluator
from onboarding_flow.models.condition import ResponseSpec
from onboarding_flow.models.question import BaseQuestion
from onboarding_flow.profile import Profile

logger = logging.getLogger(__name__)


def greeting_for(hour: int) -> str:
    """Time-of-day greeting for a 0-23 hour."""
    if hour < 12:
        return "Good morning"
    if hour < 17:
        return "Good afternoon"
    return "Good evening"


def first_name(full_name: Any) -> str:
    """First whitespace-separated word of a name, or "" if there is none."""
    parts = str(full_name or "").split()
    return parts[0] if parts else ""


def upper_first(text: Any) -> str:
    """Uppercase the first character and leave the rest alone."""
    text = str(text)
    return text[:1].upper() + text[1:]


class ResponseRenderer:
    """Renders question messages and picks/renders response texts.

    Args:
        evaluator: condition evaluator used for ``ResponseSpec.rules``.
            A fresh one is created if omitted.
    """

    def __init__(self, evaluator: ConditionEvaluator | None = None) -> None:
        self._evaluator = evaluator or ConditionEvaluator()
        self._env = ImmutableSandboxedEnvironment(
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )
        self._env.filters["first_name"] = first_name
        self._env.filters["upper_first"] = upper_first
        # Compiled templates keyed by source text
        self._cache: dict[str, Any] = {}

    def render(self, source: str, **context: Any) -> str:
        """Render a template string with arbitrary context."""
        template = self._cache.get(source)
        if template is None:
            template = self._env.from_string(source)
            self._cache[source] = template
        return template.render(**context)

    def render_message(
        self,
        question: BaseQuestion,
        profile: Profile,
        *,
        greeting: str,
    ) -> str:
        """Render the prompt text for *question*."""
        return self.render(question.message, profile=profile, greeting=greeting)

    def render_response(
        self,
        spec: ResponseSpec | None,
        value: Any,
        profile: Profile,
        *,
        greeting: str = "",
    ) -> str | None:
        """Pick and render the response text for an accepted answer.

        Resolution order: ``by_value`` (exact, on ``str(value)``), then the
        first matching rule, then ``default``.

        Returns:
            The rendered text, or None if the spec yields nothing.
        """
        source = self.select_response(spec, value, profile)
        if source is None:
            return None
        return self.render(source, value=value, profile=profile, greeting=greeting)

    def select_response(
        self,
        spec: ResponseSpec | None,
        value: Any,
        profile: Profile,
    ) -> str | None:
        """Return the unrendered response template for *value*, if any."""
        if spec is None:
            return None

        # Lists are unhashable and never keyed by value
        if spec.by_value and not isinstance(value, (list, dict)):
            key = str(value)
            if key in spec.by_value:
                return spec.by_value[key]

        for rule in spec.rules:
            if self._evaluator.all_hold(rule.when, value, profile):
                return rule.text

        return spec.default
