"""InMemoryPersistence — process-local persistence for development and tests.

Values are kept as JSON text, exactly as a browser's local storage would
hold them, so decoding failures behave like real corrupt storage and raise
:class:`~onboarding_flow.errors.MalformedStoredState`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from onboarding_flow.errors import MalformedStoredState
from onboarding_flow.interfaces import PersistenceAdapter
from onboarding_flow.models.state import FlowState

logger = logging.getLogger(__name__)

# Storage keys per user
PROFILE_KEY = "profile"
STATE_KEY = "flow_state"
APP_PROFILE_KEY = "app_profile"


class InMemoryPersistence(PersistenceAdapter):
    """Keeps JSON-encoded progress per user in a dict."""

    def __init__(self) -> None:
        # user_id -> {key: json text}
        self._store: dict[str, dict[str, str]] = {}

    # ------------------------------------------------------------------
    # Raw access (seeding and inspection)
    # ------------------------------------------------------------------

    def put_raw(self, user_id: str, key: str, text: str) -> None:
        """Store raw text under *key*, bypassing encoding."""
        self._store.setdefault(user_id, {})[key] = text

    def get_raw(self, user_id: str, key: str) -> str | None:
        return self._store.get(user_id, {}).get(key)

    def _decode(self, user_id: str, key: str) -> dict[str, Any] | None:
        text = self.get_raw(user_id, key)
        if text is None:
            return None
        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedStoredState(f"stored {key} for {user_id} is not valid JSON") from exc
        if not isinstance(value, dict):
            raise MalformedStoredState(f"stored {key} for {user_id} is not an object")
        return value

    # ------------------------------------------------------------------
    # PersistenceAdapter
    # ------------------------------------------------------------------

    async def load(self, user_id: str) -> dict[str, Any] | None:
        return self._decode(user_id, PROFILE_KEY)

    async def load_app_profile(self, user_id: str) -> dict[str, Any] | None:
        return self._decode(user_id, APP_PROFILE_KEY)

    async def load_state(self, user_id: str) -> FlowState | None:
        """Last saved position (for inspection; runs never resume from it)."""
        raw = self._decode(user_id, STATE_KEY)
        return FlowState(**raw) if raw is not None else None

    async def save(self, user_id: str, profile: dict[str, Any], state: FlowState) -> None:
        self.put_raw(user_id, PROFILE_KEY, json.dumps(profile))
        self.put_raw(user_id, STATE_KEY, state.model_dump_json())

    async def save_app_profile(self, user_id: str, app_profile: dict[str, Any]) -> None:
        self.put_raw(user_id, APP_PROFILE_KEY, json.dumps(app_profile))
        logger.info("Stored application profile for %s", user_id)

    async def clear(self, user_id: str) -> None:
        self._store.pop(user_id, None)
