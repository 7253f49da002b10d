"""
gateway/query.py -- Natural-language query submission.

The server interprets the text and answers with whatever JSON suits the
question (a list of records, a single item, a message). The client does not
interpret the answer. Every gateway error kind propagates unchanged.
"""

from __future__ import annotations

from typing import Any

from core.models import RequestOptions
from gateway.client import Gateway

QUERY_ENDPOINT = "query"


async def submit_query(gateway: Gateway, text: str) -> Any:
    """POST {"query": text} and return the parsed answer.

    Surrounding whitespace is stripped. Blank text raises ValueError without
    a request being made.
    """
    query = text.strip()
    if not query:
        raise ValueError("Query text is empty.")
    return await gateway.request(QUERY_ENDPOINT, RequestOptions(method="POST", body={"query": query}))
