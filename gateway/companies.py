"""
gateway/companies.py -- Typed helpers for the `companies` resource.

Thin wrappers over Gateway.request(). Every gateway error kind propagates
unchanged; a payload that does not look like a company becomes ApiError.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from core.errors import ApiError
from core.models import Company, RequestOptions
from gateway.client import Gateway

COMPANIES_ENDPOINT = "companies"


async def list_companies(gateway: Gateway) -> list[Company]:
    data = await gateway.request(COMPANIES_ENDPOINT)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ApiError("Expected a list of companies.")
    try:
        return [Company.model_validate(item) for item in data]
    except ValidationError as e:
        raise ApiError(f"Unexpected company payload: {e}") from e


async def create_company(gateway: Gateway, fields: dict[str, Any]) -> Company:
    """POST a new company and return the record the server created.

    fields must include "name"; the server fills ID and timestamps.
    """
    data = await gateway.request(COMPANIES_ENDPOINT, RequestOptions(method="POST", body=fields))
    try:
        return Company.model_validate(data)
    except ValidationError as e:
        raise ApiError(f"Unexpected company payload: {e}") from e
