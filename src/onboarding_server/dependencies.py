"""FastAPI dependency injection — provides the flow registry, live runs, and user identity."""

import hmac

from fastapi import Header, HTTPException, Request

from onboarding_flow.registry import SchemaRegistry

from onboarding_server.sessions import SessionRegistry


# ------------------------------------------------------------------
# Shared singletons: stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_registry(request: Request) -> SchemaRegistry:
    """Return the loaded SchemaRegistry from ``app.state``."""
    return request.app.state.registry


def get_sessions(request: Request) -> SessionRegistry:
    """Return the SessionRegistry from ``app.state``."""
    return request.app.state.sessions


# ------------------------------------------------------------------
# User identity: extracted from the X-User-ID header
# ------------------------------------------------------------------

async def get_user_id(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str:
    """Extract user identity from the ``X-User-ID`` header.

    Returns 401 if the header is missing.  When ``TRUSTED_PROXY_SECRET`` is
    configured the request must also carry a matching ``X-Proxy-Secret``
    (403 otherwise).
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")

    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise HTTPException(status_code=403, detail="X-Proxy-Secret header is required")
        # Constant-time comparison
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise HTTPException(status_code=403, detail="Invalid proxy secret")

    return x_user_id
