"""Onboarding constants shared across the SDK.

These values are referenced by the registry, the profile helpers and the
flow controller.  Several can be overridden via environment variables so
that deployments can swap the flow definition or the default timezone
without code changes.
"""

import os
from pathlib import Path

# Directory holding the packaged flow definitions (``flows/v1.yaml``).
FLOWS_DIR = Path(__file__).resolve().parent / "flows"

# Flow schema loaded by SchemaRegistry when no explicit path is given.
# Overridable via ONBOARDING_SCHEMA_PATH env var.
SCHEMA_PATH = Path(os.getenv("ONBOARDING_SCHEMA_PATH", str(FLOWS_DIR / "v1.yaml")))

# Timezone written to ``life.timezone`` when a fresh profile is created.
# Overridable via ONBOARDING_DEFAULT_TIMEZONE env var.
DEFAULT_TIMEZONE = os.getenv("ONBOARDING_DEFAULT_TIMEZONE", "UTC")

# Reprompt shown after an answer is rejected, used when the flow schema
# does not declare its own.
DEFAULT_REPROMPT = "I didn't quite catch that. Could you try again?"

# Hard default for ``lifestyle.sleepHours`` in the application profile.
# The onboarding flow never asks for it.
DEFAULT_SLEEP_HOURS = 8

# Question types that collect an answer through an input affordance.
INPUT_TYPES: set[str] = {"text", "choice", "multiselect", "slider"}

# Profile categories in canonical order.
CATEGORIES: list[str] = ["life", "health", "diet", "financial", "goals"]
