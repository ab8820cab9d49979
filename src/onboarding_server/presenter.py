"""BufferedPresenter — a Presenter that records what to show instead of showing it.

Over HTTP there is no screen and no timer.  The presenter collects display
calls as events; the route handler returns them to the client, which does
its own pacing.  A pure intro's auto-advance callback is held until
:meth:`fire_pending` runs it, right after the request's engine call.
"""

from __future__ import annotations

import logging
from typing import Any

from onboarding_flow.interfaces import AutoAdvance, Presenter
from onboarding_flow.models.question import Option
from onboarding_flow.models.schema import Section

logger = logging.getLogger(__name__)

# Guard against a flow made entirely of pure intros looping forever
_MAX_AUTO_ADVANCES = 100


class BufferedPresenter(Presenter):
    """Collects presenter calls as JSON-ready event dicts."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self.progress: int = 0
        self.affordance: dict[str, Any] | None = None
        self._pending: AutoAdvance | None = None

    def take_events(self) -> list[dict[str, Any]]:
        """Return the buffered events and clear the buffer."""
        events, self.events = self.events, []
        return events

    async def fire_pending(self) -> int:
        """Run held auto-advance callbacks until none is left.

        Returns:
            how many callbacks ran.
        """
        fired = 0
        while self._pending is not None and fired < _MAX_AUTO_ADVANCES:
            callback, self._pending = self._pending, None
            await callback()
            fired += 1
        if self._pending is not None:
            logger.warning("Stopped after %d consecutive auto-advances", fired)
            self._pending = None
        return fired

    # ------------------------------------------------------------------
    # Presenter
    # ------------------------------------------------------------------

    def show_message(self, text: str) -> None:
        self.events.append({"type": "message", "text": text})

    def show_text_affordance(self) -> None:
        self._set_affordance({"kind": "text"})

    def show_choice_affordance(self, options: list[Option]) -> None:
        self._set_affordance({"kind": "choice", "options": [o.model_dump() for o in options]})

    def show_multiselect_affordance(self, options: list[Option]) -> None:
        self._set_affordance({"kind": "multiselect", "options": [o.model_dump() for o in options]})

    def show_slider_affordance(self, min_value: int, max_value: int, default: int) -> None:
        self._set_affordance({"kind": "slider", "min": min_value, "max": max_value, "default": default})

    def clear_affordance(self) -> None:
        if self.affordance is not None:
            self.events.append({"type": "clear_affordance"})
        self.affordance = None

    def show_section_banner(self, section: Section) -> None:
        self.events.append({
            "type": "section",
            "id": section.id,
            "icon": section.icon,
            "title": section.title,
            "description": section.description,
        })

    def update_progress(self, percent: int) -> None:
        self.progress = percent
        self.events.append({"type": "progress", "percent": percent})

    def schedule_auto_advance(self, callback: AutoAdvance) -> None:
        self._pending = callback

    def _set_affordance(self, affordance: dict[str, Any]) -> None:
        self.affordance = affordance
        self.events.append({"type": "affordance", **affordance})
