"""Endpoint table loader: reads the bundled Graph Swagger document into descriptors."""

from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from aadappcheck.errors import UnknownOperationError
from aadappcheck.parser.base import Endpoint
from aadappcheck.parser.swagger import parse_openapi

ENDPOINTS_DIR = Path(__file__).parent
GRAPH_DOCUMENT = ENDPOINTS_DIR / "graph.yaml"


def load_endpoints(file_path: Path | None = None) -> Mapping[str, Endpoint]:
    """Return {operation_id: Endpoint} for a Swagger document (the bundled one by default)."""
    if file_path is None:
        return _bundled()
    return _index(parse_openapi(file_path))


def get_endpoint(operation_id: str) -> Endpoint:
    """Look up one operation in the bundled table."""
    try:
        return _bundled()[operation_id]
    except KeyError:
        raise UnknownOperationError(operation_id) from None


@lru_cache(maxsize=1)
def _bundled() -> Mapping[str, Endpoint]:
    return MappingProxyType(_index(parse_openapi(GRAPH_DOCUMENT)))


def _index(endpoints: list[Endpoint]) -> dict[str, Endpoint]:
    table: dict[str, Endpoint] = {}
    for ep in endpoints:
        if ep.operation_id in table:
            raise ValueError(f"Duplicate operationId {ep.operation_id!r}")
        table[ep.operation_id] = ep
    return table
