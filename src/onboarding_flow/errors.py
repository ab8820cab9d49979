"""Error taxonomy for the onboarding engine.

None of these are fatal to a run: the controller recovers from every one of
them and keeps the flow moving.

  - ``InvalidInput``: an answer failed to parse or validate.  The controller
    reprompts and leaves the profile and position untouched.
  - ``PersistenceFailure``: a persistence adapter raised during load/save.
    Logged; the run continues on in-memory state.
  - ``MalformedStoredState``: stored progress could not be decoded.  Treated
    like any other persistence failure (discard and default).
"""


class OnboardingError(Exception):
    """Base class for all onboarding engine errors."""


class InvalidInput(OnboardingError):
    """Raised by the input pipeline when an answer is rejected.

    Attributes:
        question_id: id of the question being answered
        reason: short machine-friendly reason (e.g. "parse", "validation")
    """

    def __init__(self, question_id: str, reason: str) -> None:
        super().__init__(f"Invalid answer for '{question_id}': {reason}")
        self.question_id = question_id
        self.reason = reason


class PersistenceFailure(OnboardingError):
    """A persistence adapter could not load or save onboarding progress."""


class MalformedStoredState(PersistenceFailure):
    """Stored onboarding progress exists but cannot be decoded."""
