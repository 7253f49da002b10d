"""
auth/identity.py -- Exchange a bearer credential for the user's profile.

The identity endpoint is the WordPress "current user" route. Any non-success
status means the credential is no longer accepted; the session store treats
that and a network failure the same way (the session has expired).

This is a blocking call. The session store runs it with asyncio.to_thread so
the event loop is never held up by identity resolution.

Layer rule: no imports from gateway/ or storage/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

import requests
from pydantic import ValidationError

from core.config import Settings, get_settings
from core.errors import IdentityResolutionError, NetworkError
from core.models import Identity, ProfilePayload

logger = logging.getLogger("nexus.identity")

# Shared across resolutions for connection pooling. The identity route never
# needs to follow more than a couple of hops.
_session = requests.Session()
_session.max_redirects = 3


def resolve_identity(credential: str, settings: Settings | None = None) -> Identity:
    """Fetch the profile for credential and map it to an Identity.

    Raises:
        IdentityResolutionError: non-success status, or a payload without a
            numeric id.
        NetworkError: the request did not complete.
    """
    settings = settings or get_settings()
    try:
        resp = _session.get(
            settings.identity_url,
            headers={"Authorization": f"Bearer {credential}"},
            timeout=settings.request_timeout,
        )
    except requests.RequestException as e:
        logger.warning("Identity request failed: %s", e)
        raise NetworkError(str(e)) from e

    if not resp.ok:
        logger.warning("Identity endpoint rejected credential (status %d)", resp.status_code)
        raise IdentityResolutionError(f"Identity endpoint returned {resp.status_code}.")

    try:
        profile = ProfilePayload.model_validate(resp.json())
    except (ValueError, ValidationError) as e:
        raise IdentityResolutionError(f"Unexpected identity payload: {e}") from e

    identity = profile.to_identity()
    logger.info("Resolved identity id=%d", identity.id)
    return identity
