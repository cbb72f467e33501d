"""Swagger 2.0 document parser.

Turns a Swagger document into Endpoint descriptors. This is what replaces a
generated client: the document is the table, and one generic builder and
executor serve every operation in it.
"""

import logging
import re
from pathlib import Path

import yaml

from .base import LOCATIONS, Endpoint, Param

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


def load_document(file_path: Path) -> dict:
    """Read a Swagger file. YAML is a superset of JSON, so both are accepted."""
    text = Path(file_path).read_text(encoding="utf-8")
    doc = yaml.safe_load(text)
    if not isinstance(doc, dict) or not ("swagger" in doc or "openapi" in doc):
        raise ValueError(f"{file_path} is not a Swagger/OpenAPI document")
    return doc


def parse_openapi(file_path: Path) -> list[Endpoint]:
    """Parse a Swagger file into a list of Endpoint."""
    return parse_swagger(load_document(file_path))


def parse_swagger(doc: dict) -> list[Endpoint]:
    """Parse an already loaded Swagger document into a list of Endpoint."""
    global_params = doc.get("parameters", {})
    endpoints = []

    for path, methods in doc.get("paths", {}).items():
        shared = methods.get("parameters", [])
        for method, operation in methods.items():
            if method.upper() not in HTTP_METHODS:
                continue

            operation_id = operation.get("operationId")
            if not operation_id:
                logger.warning("Skipping %s %s: no operationId", method.upper(), path)
                continue

            raw_params = _merge_parameters(
                [_resolve(p, global_params) for p in shared],
                [_resolve(p, global_params) for p in operation.get("parameters", [])],
            )

            endpoints.append(
                Endpoint(
                    operation_id=operation_id,
                    method=method.upper(),
                    path=path,
                    summary=operation.get("summary", ""),
                    parameters=tuple(_parse_parameter(p, operation_id) for p in raw_params),
                    tags=tuple(operation.get("tags", [])),
                )
            )

    return endpoints


def to_call_name(wire_name: str) -> str:
    """api-version -> apiVersion, $filter stays $filter."""
    head, *rest = re.split(r"[-_]", wire_name)
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _resolve(param: dict, global_params: dict) -> dict:
    ref = param.get("$ref")
    if ref is None:
        return param
    prefix = "#/parameters/"
    if not ref.startswith(prefix) or ref[len(prefix):] not in global_params:
        raise ValueError(f"Cannot resolve parameter reference {ref!r}")
    return global_params[ref[len(prefix):]]


def _merge_parameters(shared: list[dict], own: list[dict]) -> list[dict]:
    # Operation-level parameters override path-level ones with the same name and location.
    merged = {(p["name"], p.get("in")): p for p in shared}
    for p in own:
        merged[(p["name"], p.get("in"))] = p
    return list(merged.values())


def _parse_parameter(p: dict, operation_id: str) -> Param:
    location = p.get("in", "query")
    if location not in LOCATIONS:
        raise ValueError(f"{operation_id}: parameter {p['name']!r} uses unsupported location {location!r}")

    if location == "body":
        param_type = p.get("schema", {}).get("type", "object")
    else:
        param_type = p.get("type", "string")

    return Param(
        name=p.get("x-aad-name") or to_call_name(p["name"]),
        location=location,
        required=location == "path" or p.get("required", False),
        wire_name=p["name"],
        param_type=param_type,
        description=p.get("description", ""),
    )
