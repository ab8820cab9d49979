"""Server configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  In production
the values are typically overridden via env vars or a ``.env`` file.
"""

import os
from dataclasses import dataclass, field

PERSISTENCE_BACKENDS = ("postgres", "memory")


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS: comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Flow YAML (None → onboarding_flow default, flows/v1.yaml)
    schema_path: str | None = None

    # Logging
    log_level: str = "INFO"

    # "postgres" stores progress via onboarding_db; "memory" keeps it in
    # the process (lost on restart)
    persistence_backend: str = "postgres"

    # Controllers untouched for this many minutes are abandoned and
    # dropped from memory.  0 disables eviction.
    idle_timeout_minutes: int = 30

    # When set, requests carrying X-User-ID must also carry a matching
    # X-Proxy-Secret, proving the identity came from the API gateway
    trusted_proxy_secret: str | None = None


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*`` / ``ONBOARDING_*`` environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    backend = os.getenv("ONBOARDING_PERSISTENCE", "postgres").lower()
    if backend not in PERSISTENCE_BACKENDS:
        raise ValueError(
            f"ONBOARDING_PERSISTENCE must be one of {PERSISTENCE_BACKENDS}, got '{backend}'"
        )

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        schema_path=os.getenv("ONBOARDING_SCHEMA_PATH") or None,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        persistence_backend=backend,
        idle_timeout_minutes=int(os.getenv("ONBOARDING_IDLE_TIMEOUT_MINUTES", "30")),
        trusted_proxy_secret=os.getenv("TRUSTED_PROXY_SECRET") or None,
    )
