"""Abstract interfaces for the collaborators the flow controller calls out to.

These ABCs define the contract that hosts must fulfil:

  - :class:`Presenter` displays messages and input affordances, and owns
    pacing timers (typing delays, intro auto-advance, section banners)
  - :class:`PersistenceAdapter` loads and saves onboarding progress

Concrete persistence adapters live in ``onboarding_db``; the HTTP host in
``onboarding_server`` ships a buffering presenter.

Typical integration flow::

    registry = SchemaRegistry()
    registry.load()

    controller = FlowController(
        registry, MyPresenter(), user_id="u1", persistence=SqlPersistence(),
    )
    controller.on_complete(publish_profile)
    await controller.start()
    # ... presenter forwards answers ...
    await controller.submit_answer("Jane Doe")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from onboarding_flow.models.question import Option
from onboarding_flow.models.schema import Section
from onboarding_flow.models.state import FlowState
from onboarding_flow.profile import Profile

# Zero-argument coroutine function the presenter runs when its timer fires.
AutoAdvance = Callable[[], Awaitable[Any]]


class Presenter(ABC):
    """Interface for the surface that shows the conversation.

    Display calls are synchronous and must not block: any visual delay
    (typing indicators, banners) is the presenter's business.  The engine's
    transitions are logically instantaneous.
    """

    @abstractmethod
    def show_message(self, text: str) -> None:
        """Append an assistant message to the conversation."""
        ...

    @abstractmethod
    def show_text_affordance(self) -> None:
        """Enable the free-text input box."""
        ...

    @abstractmethod
    def show_choice_affordance(self, options: list[Option]) -> None:
        """Show single-choice buttons."""
        ...

    @abstractmethod
    def show_multiselect_affordance(self, options: list[Option]) -> None:
        """Show toggle buttons plus a confirm button."""
        ...

    @abstractmethod
    def show_slider_affordance(self, min_value: int, max_value: int, default: int) -> None:
        """Show an integer slider."""
        ...

    @abstractmethod
    def clear_affordance(self) -> None:
        """Remove whatever input affordance is showing."""
        ...

    @abstractmethod
    def show_section_banner(self, section: Section) -> None:
        """Show the transition banner for *section* (icon, title, description)."""
        ...

    @abstractmethod
    def update_progress(self, percent: int) -> None:
        """Display the current completion percentage."""
        ...

    @abstractmethod
    def schedule_auto_advance(self, callback: AutoAdvance) -> None:
        """Arrange for *callback* to be awaited after the intro has been read.

        Parameters
        ----------
        callback:
            Coroutine function advancing past a pure intro message.  The
            presenter decides the delay.  Calling it after the flow has moved
            on is harmless; the controller ignores stale callbacks.
        """
        ...


class PersistenceAdapter(ABC):
    """Interface for storing onboarding progress per user.

    Implementations may raise on failure; the controller logs and carries
    on.  Undecodable stored data should raise
    :class:`~onboarding_flow.errors.MalformedStoredState`.
    """

    @abstractmethod
    async def load(self, user_id: str) -> Profile | None:
        """Return the stored onboarding profile, or None if there is none.

        Parameters
        ----------
        user_id:
            Opaque user identifier.

        Returns
        -------
        Profile | None
            The raw stored profile.  The controller merges it onto the flow
            defaults, so unknown or mistyped fields are harmless.
        """
        ...

    @abstractmethod
    async def load_app_profile(self, user_id: str) -> dict[str, Any] | None:
        """Return the stored application profile, or None if there is none."""
        ...

    @abstractmethod
    async def save(self, user_id: str, profile: Profile, state: FlowState) -> None:
        """Store the current profile and flow position."""
        ...

    @abstractmethod
    async def save_app_profile(self, user_id: str, app_profile: dict[str, Any]) -> None:
        """Store the finished application profile and mark onboarding complete."""
        ...

    @abstractmethod
    async def clear(self, user_id: str) -> None:
        """Remove all stored onboarding progress for *user_id*."""
        ...
