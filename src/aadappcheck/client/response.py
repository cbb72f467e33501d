"""Executor: sends one request and classifies the outcome."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from aadappcheck.errors import GraphApiError

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = re.compile(r"^application/(.+\+)?json", re.IGNORECASE)


@dataclass
class GraphResult:
    """A successful call: the transport response and, except for 204, its body."""

    response: httpx.Response
    body: Any = None
    has_body: bool = True

    @property
    def status_code(self) -> int:
        return self.response.status_code


def is_json_content_type(value: str | None) -> bool:
    return bool(value) and JSON_CONTENT_TYPE.match(value.strip()) is not None


def parse_body(response: httpx.Response) -> Any:
    """Parsed JSON when the content type says JSON and it parses, else the raw text."""
    text = response.text
    if not text:
        return None
    if not is_json_content_type(response.headers.get("content-type")):
        return text
    try:
        return json.loads(text)
    except ValueError:
        logger.debug("Response claims JSON but does not parse, passing raw body through")
        return text


def normalize(response: httpx.Response) -> GraphResult:
    """204 -> no body; other 2xx -> body; anything else raises GraphApiError."""
    if response.status_code == 204:
        return GraphResult(response=response, has_body=False)

    body = parse_body(response)
    if 200 <= response.status_code <= 299:
        return GraphResult(response=response, body=body)
    raise GraphApiError(response, body)


async def execute(client: httpx.AsyncClient, request: httpx.Request) -> GraphResult:
    """Send ``request`` exactly once. Transport errors propagate unchanged."""
    try:
        response = await client.send(request)
    except httpx.TransportError as e:
        logger.warning("%s %s failed: %s", request.method, request.url, e)
        raise
    logger.debug("%s %s -> %s", request.method, request.url, response.status_code)
    return normalize(response)
