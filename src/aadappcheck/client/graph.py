"""Azure AD Graph client.

Every operation of the endpoint table goes through the same two steps:
``build_request`` and ``execute``. There are no per-endpoint methods.
"""

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import httpx

from aadappcheck.client.request import build_request
from aadappcheck.client.response import GraphResult, execute
from aadappcheck.config import config
from aadappcheck.endpoints.loader import load_endpoints
from aadappcheck.errors import UnknownOperationError
from aadappcheck.parser.base import Endpoint

logger = logging.getLogger(__name__)


class GraphClient:
    """Async client for the Azure AD Graph API driven by an endpoint table."""

    def __init__(
        self,
        domain: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        endpoints: Mapping[str, Endpoint] | None = None,
        escape_path: bool = False,
        default_params: dict[str, Any] | None = None,
    ):
        self.domain = domain or config.GRAPH_DOMAIN
        self.endpoints = MappingProxyType(dict(endpoints if endpoints is not None else load_endpoints()))
        self.escape_path = escape_path
        self.default_params = dict(default_params or {})
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient()

    @classmethod
    def for_token(cls, token, **kwargs) -> "GraphClient":
        """Client whose calls default to the tenant, bearer token and API version of a session."""
        defaults = {
            "tenantId": token.tenant_id,
            "Authorization": token.authorization,
            "apiVersion": config.API_VERSION,
        }
        defaults.update(kwargs.pop("default_params", None) or {})
        return cls(default_params=defaults, **kwargs)

    def endpoint(self, operation_id: str) -> Endpoint:
        try:
            return self.endpoints[operation_id]
        except KeyError:
            raise UnknownOperationError(operation_id) from None

    def build(
        self,
        operation_id: str,
        params: dict[str, Any] | None = None,
        extra_query: dict[str, Any] | None = None,
    ) -> httpx.Request:
        """Build the request for one operation without sending it."""
        merged = {**self.default_params, **(params or {})}
        return build_request(
            self.endpoint(operation_id),
            merged,
            base_url=self.domain,
            extra_query=extra_query,
            escape_path=self.escape_path,
        )

    async def call(
        self,
        operation_id: str,
        params: dict[str, Any] | None = None,
        extra_query: dict[str, Any] | None = None,
    ) -> GraphResult:
        """Build and send one request.

        Raises MissingParameterError before any I/O, GraphApiError for non-2xx
        responses, and httpx.TransportError subclasses as they come.
        """
        request = self.build(operation_id, params, extra_query)
        return await execute(self._http_client, request)

    async def call_all(
        self, calls: Iterable[tuple[str, dict[str, Any] | None]]
    ) -> list[GraphResult | BaseException]:
        """Run independent calls concurrently and settle them all.

        Each entry is ``(operation_id, params)``. The result list keeps the
        input order; failed calls show up as their exception.
        """
        return await asyncio.gather(
            *(self.call(operation_id, params) for operation_id, params in calls),
            return_exceptions=True,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
