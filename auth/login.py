"""
auth/login.py -- Username/password exchange against the JWT login endpoint.

This is a collaborator of the session core, not part of it: the caller takes
the returned credential and hands it to SessionStore.login(). Nothing here
reads or writes session state.

Layer rule: no imports from gateway/ or storage/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

import requests

from core.config import Settings, get_settings
from core.errors import LoginError, NetworkError
from core.models import ErrorPayload

logger = logging.getLogger("nexus.login")

_DEFAULT_FAILURE = "Login failed. Please check your credentials."

_session = requests.Session()
_session.max_redirects = 3


def _error_message(data: object) -> str | None:
    if not isinstance(data, dict):
        return None
    return ErrorPayload.model_validate(data).message


def request_credential(username: str, password: str, settings: Settings | None = None) -> str:
    """POST the username/password pair and return the issued bearer token.

    Raises:
        LoginError: the endpoint rejected the pair or returned no token. The
            message is the server's own when it sent one.
        NetworkError: the request did not complete.
    """
    settings = settings or get_settings()
    try:
        resp = _session.post(
            settings.login_url,
            json={"username": username, "password": password},
            timeout=settings.request_timeout,
        )
    except requests.RequestException as e:
        logger.warning("Login request failed: %s", e)
        raise NetworkError(str(e)) from e

    try:
        data = resp.json()
    except ValueError:
        data = None

    if not resp.ok:
        message = _error_message(data) or _DEFAULT_FAILURE
        logger.info("Login rejected for %s (status %d)", username, resp.status_code)
        raise LoginError(message, status_code=resp.status_code)

    token = data.get("token") if isinstance(data, dict) else None
    if not isinstance(token, str) or not token:
        raise LoginError("Login response did not contain a token.", status_code=resp.status_code)

    logger.info("Login accepted for %s", username)
    return token
