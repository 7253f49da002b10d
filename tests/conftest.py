"""
tests/conftest.py -- Shared fixtures for the Nexus client tests.

This module provides:
  - settings: Settings pointed at a fake site and an in-memory storage URL
  - storage: an isolated in-memory ClientStorage per test
  - make_response: builds real requests.Response objects for mocked HTTP

Network access is never real. Tests mock requests.Session (or the module-level
_session in auth/) and return responses built by make_response, so status
classification runs through requests' own Response.ok / Response.json().
"""

from __future__ import annotations

import json
from collections.abc import Callable, Generator
from typing import Any

import pytest
import requests

from core.config import Settings
from storage.store import ClientStorage


@pytest.fixture
def settings() -> Settings:
    return Settings(
        site_url="http://nexus.test/",
        storage_url="sqlite:///:memory:",
        request_timeout=5,
    )


@pytest.fixture
def storage() -> Generator[ClientStorage, None, None]:
    s = ClientStorage("sqlite:///:memory:")
    yield s
    s.close()


def _build_response(
    status: int = 200,
    body: Any = None,
    reason: str = "OK",
    raw: bytes | None = None,
) -> requests.Response:
    """Build a requests.Response without touching the network.

    body is JSON encoded; raw is used verbatim (for non-JSON bodies). With
    neither, the body is empty.
    """
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason
    if raw is not None:
        resp._content = raw
    elif body is not None:
        resp._content = json.dumps(body).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
    else:
        resp._content = b""
    return resp


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    return _build_response
