"""Profile helpers — defaults, best-effort merge, path access and remapping.

A profile is a plain JSON-compatible ``dict[category, dict[field, value]]``.
The controller owns the current profile; the input pipeline only ever works
on a copy and hands the new profile back.

Two shapes exist:

  - the **onboarding profile** (``life``/``health``/``diet``/``financial``/
    ``goals``) collected by the flow
  - the **application profile** (``personal``/``lifestyle``/``financial``/
    ``health``/``diet``/``goals``) consumed by the rest of the app.  It is
    produced by :func:`to_app_profile` and read back by
    :func:`merge_app_profile`.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from onboarding_flow.constants import DEFAULT_SLEEP_HOURS, DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

Profile = dict[str, dict[str, Any]]


# ---------------------------------------------------------------------------
# Defaults and merging
# ---------------------------------------------------------------------------

def default_profile(defaults: Profile, *, timezone: str | None = None) -> Profile:
    """Build a fresh profile from schema defaults.

    ``life.timezone`` is filled from *timezone* (or ``DEFAULT_TIMEZONE``)
    when the schema declares the field with an empty default.
    """
    profile = copy.deepcopy(defaults)
    life = profile.get("life")
    if life is not None and "timezone" in life and not life["timezone"]:
        life["timezone"] = timezone or DEFAULT_TIMEZONE
    return profile


def _compatible(default: Any, value: Any) -> bool:
    """True if a stored *value* may replace a field whose default is *default*."""
    if default is None:
        # Untyped default (e.g. morningPerson): accept any JSON scalar or None
        return value is None or isinstance(value, (str, int, float, bool))
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(default, (int, float)):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return isinstance(value, type(default))


def merge_profile(defaults: Profile, stored: Any) -> Profile:
    """Overlay *stored* onto *defaults*, keeping only known, well-typed fields.

    Unknown categories and fields are dropped.  Missing or mistyped fields
    keep their default.  A non-dict *stored* yields the defaults unchanged.
    """
    merged = copy.deepcopy(defaults)
    if not isinstance(stored, dict):
        if stored is not None:
            logger.warning("Ignoring stored profile of type %s", type(stored).__name__)
        return merged

    dropped = 0
    for category, fields in stored.items():
        target = merged.get(category)
        if target is None or not isinstance(fields, dict):
            dropped += 1
            continue
        for name, value in fields.items():
            if name not in target or not _compatible(target[name], value):
                dropped += 1
                continue
            target[name] = copy.deepcopy(value)

    if dropped:
        logger.info("Profile merge dropped %d unknown or mistyped entries", dropped)
    return merged


# ---------------------------------------------------------------------------
# Path access
# ---------------------------------------------------------------------------

def get_path(profile: Profile, path: str) -> Any:
    """Read ``"category.field"`` from *profile*.

    Raises:
        KeyError: if the category or field does not exist.
    """
    category, name = path.split(".", 1)
    return profile[category][name]


def set_path(profile: Profile, path: str, value: Any) -> None:
    """Write ``"category.field"`` in place, replacing any previous value.

    Raises:
        KeyError: if the category does not exist.
    """
    category, name = path.split(".", 1)
    profile[category][name] = value


# ---------------------------------------------------------------------------
# Application profile mapping
# ---------------------------------------------------------------------------

def to_app_profile(profile: Profile) -> dict[str, Any]:
    """Re-shape a finished onboarding profile into the application profile.

    The mapping is fixed:

        personal   ← life.{fullName, age, occupation, city, state, timezone}
        lifestyle  ← interests=goals.lifeGoals, lifeGoals=goals.oneYearGoals,
                     morningPerson=(life.morningPerson == "morning"),
                     workStyle=life.workStyle, sleepHours=8
        financial  ← financial.{salary, currency, housingType, monthlyBudget,
                     savingsRate, financialGoals}, netWorth=0
        health, diet, goals ← copied whole
    """
    life = profile.get("life", {})
    financial = profile.get("financial", {})
    goals = profile.get("goals", {})
    return {
        "personal": {
            "fullName": life.get("fullName"),
            "age": life.get("age"),
            "occupation": life.get("occupation"),
            "city": life.get("city"),
            "state": life.get("state"),
            "timezone": life.get("timezone"),
        },
        "lifestyle": {
            "interests": copy.deepcopy(goals.get("lifeGoals")),
            "lifeGoals": copy.deepcopy(goals.get("oneYearGoals")),
            "morningPerson": life.get("morningPerson") == "morning",
            "workStyle": life.get("workStyle"),
            "sleepHours": DEFAULT_SLEEP_HOURS,
        },
        "financial": {
            "salary": financial.get("salary"),
            "netWorth": 0,
            "currency": financial.get("currency"),
            "housingType": financial.get("housingType"),
            "monthlyBudget": financial.get("monthlyBudget"),
            "savingsRate": financial.get("savingsRate"),
            "financialGoals": copy.deepcopy(financial.get("financialGoals")),
        },
        "health": copy.deepcopy(profile.get("health", {})),
        "diet": copy.deepcopy(profile.get("diet", {})),
        "goals": copy.deepcopy(goals),
        "onboardingComplete": True,
    }


def merge_app_profile(profile: Profile, app_profile: Any) -> Profile:
    """Fold a previously saved application profile back into *profile*.

    Only the fields the application profile is known to carry are read;
    falsy values fall back to empty defaults.  Returns a new profile.
    """
    merged = copy.deepcopy(profile)
    if not isinstance(app_profile, dict):
        return merged

    life = merged.setdefault("life", {})
    financial = merged.setdefault("financial", {})

    personal = app_profile.get("personal")
    if isinstance(personal, dict):
        life["fullName"] = personal.get("fullName") or ""
        life["age"] = personal.get("age") or 0
        life["occupation"] = personal.get("occupation") or ""
        life["city"] = personal.get("city") or ""

    lifestyle = app_profile.get("lifestyle")
    if isinstance(lifestyle, dict):
        life["workStyle"] = lifestyle.get("workStyle") or ""
        life["morningPerson"] = "morning" if lifestyle.get("morningPerson") else "night"

    app_financial = app_profile.get("financial")
    if isinstance(app_financial, dict):
        financial["salary"] = app_financial.get("salary") or 0
        financial["savingsRate"] = app_financial.get("savingsRate") or 0

    return merged
