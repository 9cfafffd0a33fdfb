"""
auth/oauth.py -- Authlib OAuth/OIDC provider configuration.

The federated strategy delegates the authorization exchange to Authlib.
SecretGate never implements the handshake itself: Authlib performs the
redirect, the code exchange and the CSRF state check; this module only turns
the resulting token into a FederatedCredential for the broker.

OAuth state parameter (CSRF protection) is handled by Authlib via Starlette
SessionMiddleware. The session stores the state between the authorization
redirect and the callback.

Supported provider:
  google -- Authorization code flow; OIDC discovery. Registered only when
            both GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET are set.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from auth.models import FederatedCredential
from core.config import get_settings

logger = logging.getLogger("secretgate.auth.oauth")

FEDERATED_PROVIDER = "google"

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

if _cfg.federated_enabled:
    oauth.register(
        name=FEDERATED_PROVIDER,
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid profile"},
    )
    logger.info("Google OAuth provider registered")


def get_enabled_providers() -> list[dict]:
    """Return metadata for the configured federated provider, if any.

    Returns list of {"name": str, "label": str} dicts.
    """
    if get_settings().federated_enabled:
        return [{"name": FEDERATED_PROVIDER, "label": "Google"}]
    return []


# ---------------------------------------------------------------------------
# Profile extraction
# ---------------------------------------------------------------------------


def get_federated_profile(token: dict) -> FederatedCredential:
    """Extract (provider_id, display_name) from an OIDC token response.

    provider_id is the stable `sub` claim. display_name prefers `name`, then
    `email`, then falls back to the subject itself.

    Raises:
        ValueError: If the token carries no userinfo or no subject.
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError(f"{FEDERATED_PROVIDER} OAuth: no userinfo in token response")

    subject = userinfo.get("sub")
    if not subject:
        raise ValueError(f"{FEDERATED_PROVIDER} OAuth: missing sub claim in userinfo")

    display_name = userinfo.get("name") or userinfo.get("email") or str(subject)
    return FederatedCredential(provider_id=str(subject), display_name=str(display_name))
