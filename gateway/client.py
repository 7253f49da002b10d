"""
gateway/client.py -- The one door every protected API call goes through.

For each call the gateway:
  1. Reads the credential at dispatch time (never caches it), so a login or
     logout between two calls is always honoured.
  2. Builds headers: Authorization: Bearer <credential> when one is held;
     Content-Type: application/json for write-style methods unless the caller
     already supplied one.
  3. Sends the request in a worker thread (requests is blocking).
  4. Classifies the response:
       401 / 403   -> on_auth_invalid(reason), then AuthInvalidError
       other !2xx  -> ApiError with the server's message or the status text
       2xx         -> parsed JSON body (None for an empty body)
     A request that never completes raises NetworkError and touches nothing.

The gateway holds only two callables from the session side: a credential
source and the invalidation trigger. It can clear a session but never set one.

Layer rule: no imports from storage/. auth/ is imported only for the
SessionStore type used by Gateway.for_store().
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Optional

import requests
from requests.structures import CaseInsensitiveDict

from core.config import Settings, get_settings
from core.errors import ApiError, AuthInvalidError, NetworkError
from core.models import BODY_METHODS, ErrorPayload, RequestOptions

if TYPE_CHECKING:
    from auth.session import SessionStore

logger = logging.getLogger("nexus.gateway")

_AUTH_FAILURE_STATUSES = (401, 403)

CredentialSource = Callable[[], Optional[str]]
InvalidationHook = Callable[[str], None]


class Gateway:
    """Authenticated request gateway for the protected API root.

    Usage:
        gateway = Gateway.for_store(store)
        companies = await gateway.request("companies")
        created = await gateway.request("companies", RequestOptions(method="POST", body={...}))
    """

    def __init__(
        self,
        credential_source: CredentialSource,
        on_auth_invalid: InvalidationHook,
        settings: Settings | None = None,
        http: requests.Session | None = None,
    ) -> None:
        self._credential_source = credential_source
        self._on_auth_invalid = on_auth_invalid
        self._settings = settings or get_settings()
        if http is None:
            http = requests.Session()
            http.max_redirects = 3
        self._http = http

    @classmethod
    def for_store(
        cls,
        store: SessionStore,
        settings: Settings | None = None,
        http: requests.Session | None = None,
    ) -> Gateway:
        return cls(
            credential_source=lambda: store.get_snapshot().credential,
            on_auth_invalid=store.invalidate,
            settings=settings,
            http=http,
        )

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def build_url(self, endpoint: str) -> str:
        return f"{self._settings.api_root}/{endpoint.lstrip('/')}"

    @staticmethod
    def build_headers(method: str, credential: str | None, extra: dict[str, str] | None = None) -> CaseInsensitiveDict:
        headers = CaseInsensitiveDict(extra or {})
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        if method in BODY_METHODS and "Content-Type" not in headers:
            headers["Content-Type"] = "application/json"
        return headers

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def request(
        self,
        endpoint: str,
        options: RequestOptions | None = None,
        *,
        method: str | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Perform one request against the API root and return the parsed body.

        Keyword arguments override the matching fields of options.

        Raises:
            AuthInvalidError: 401/403. The session has already been invalidated.
            ApiError: any other non-success status, or an unparseable success body.
            NetworkError: the request did not complete.
        """
        options = options or RequestOptions()
        method = (method or options.method or "GET").upper()
        if body is None:
            body = options.body
        merged = {**options.headers, **(headers or {})}

        url = self.build_url(endpoint)
        # Credential is read here, once, at dispatch.
        request_headers = self.build_headers(method, self._credential_source(), merged)

        try:
            resp = await asyncio.to_thread(
                self._http.request,
                method,
                url,
                headers=request_headers,
                data=_encode_body(body),
                timeout=self._settings.request_timeout,
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed before a response: %s", method, endpoint, e)
            raise NetworkError(str(e)) from e

        return self._classify(resp, method, endpoint)

    async def get(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="GET", **kwargs)

    async def post(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="POST", body=body, **kwargs)

    async def put(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="PUT", body=body, **kwargs)

    async def patch(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="PATCH", body=body, **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="DELETE", **kwargs)

    # ------------------------------------------------------------------
    # Response classification
    # ------------------------------------------------------------------

    def _classify(self, resp: requests.Response, method: str, endpoint: str) -> Any:
        status = resp.status_code
        if status in _AUTH_FAILURE_STATUSES:
            logger.error("%s %s rejected the credential (status %d)", method, endpoint, status)
            self._on_auth_invalid(f"{method} {endpoint} returned {status}")
            raise AuthInvalidError(status)

        if not resp.ok:
            error = _api_error(resp)
            logger.error("%s %s failed (status %d): %s", method, endpoint, status, error.message)
            raise error

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError("Response body is not valid JSON.", status_code=status) from e


def _encode_body(body: Any) -> str | bytes | None:
    if body is None or isinstance(body, (str, bytes)):
        return body
    return json.dumps(body)


def _api_error(resp: requests.Response) -> ApiError:
    """Build an ApiError from the body's message field, falling back to the status text."""
    try:
        data = resp.json()
    except ValueError:
        return ApiError(resp.reason or "API request failed (non-JSON error).", status_code=resp.status_code)

    payload = ErrorPayload.model_validate(data) if isinstance(data, dict) else None
    message = (payload.message if payload else None) or resp.reason or "API request failed."
    return ApiError(message, status_code=resp.status_code, code=payload.code if payload else None)
