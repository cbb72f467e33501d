"""Request builder: turns an Endpoint plus call parameters into an httpx.Request."""

import json
import logging
import re
from typing import Any
from urllib.parse import quote

import httpx

from aadappcheck.errors import MissingParameterError
from aadappcheck.parser.base import Endpoint

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


def build_request(
    endpoint: Endpoint,
    params: dict[str, Any] | None,
    *,
    base_url: str,
    extra_query: dict[str, Any] | None = None,
    escape_path: bool = False,
) -> httpx.Request:
    """Build the HTTP request for one call.

    Parameters are routed strictly by the descriptor: path, query, header or
    body. Values that are None count as not supplied. ``extra_query`` is
    merged last and wins over descriptor-driven query keys.

    Path values are substituted literally unless ``escape_path`` is set, so a
    value containing "/" adds path segments.
    """
    params = params or {}
    _check_required(endpoint, params)

    path_values: dict[str, str] = {}
    query: dict[str, Any] = {}
    headers: dict[str, str] = {}
    body: Any = None
    has_body = False

    for p in endpoint.parameters:
        value = params.get(p.name)
        if value is None:
            continue
        if p.location == "path":
            text = str(value)
            path_values[p.wire_name] = quote(text, safe="") if escape_path else text
        elif p.location == "query":
            query[p.wire_name] = value
        elif p.location == "header":
            headers[p.wire_name] = str(value)
        else:
            body, has_body = value, True

    if extra_query:
        query.update({k: v for k, v in extra_query.items() if v is not None})

    content = None
    if has_body:
        if isinstance(body, (bytes, bytearray)):
            content = bytes(body)
        elif isinstance(body, str):
            content = body.encode("utf-8")
        else:
            content = json.dumps(body).encode("utf-8")
            if not any(k.lower() == "content-type" for k in headers):
                headers["Content-Type"] = "application/json"

    url = base_url.rstrip("/") + render_path(endpoint.path, path_values)
    request = httpx.Request(
        endpoint.method,
        url,
        params=_stringify(query),
        headers=headers,
        content=content,
    )
    logger.debug("%s %s -> %s %s", endpoint.operation_id, endpoint.path, request.method, request.url)
    return request


def render_path(template: str, values: dict[str, str]) -> str:
    """Replace every {name} occurrence; unknown placeholders are left untouched."""
    return PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def _check_required(endpoint: Endpoint, params: dict[str, Any]) -> None:
    for p in endpoint.required_params():
        if params.get(p.name) is None:
            raise MissingParameterError(p.name, endpoint.operation_id)


def _stringify(query: dict[str, Any]) -> dict[str, str]:
    # booleans as OData literals
    result = {}
    for key, value in query.items():
        if isinstance(value, bool):
            result[key] = "true" if value else "false"
        else:
            result[key] = str(value)
    return result
