import asyncio

import httpx
import pytest

from aadappcheck.auth import SessionToken
from aadappcheck.client.graph import GraphClient
from aadappcheck.endpoints.loader import load_endpoints
from aadappcheck.errors import GraphApiError, MissingParameterError, UnknownOperationError

SESSION = {"tenantId": "t1", "apiVersion": "1.6", "Authorization": "Bearer abc"}


def _client(handler, **kwargs) -> GraphClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GraphClient("https://graph.windows.net", http_client=http, **kwargs)


class TestGraphClientCall:
    def test_call_get_user(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"objectId": "u1"})

        async def go():
            graph = _client(handler, default_params=SESSION)
            return await graph.call("GetUser", {"userId": "u1"})

        result = asyncio.run(go())
        assert result.body == {"objectId": "u1"}
        assert seen[0].url.path == "/t1/users/u1"
        assert seen[0].headers["Authorization"] == "Bearer abc"

    def test_call_params_override_defaults(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        async def go():
            graph = _client(handler, default_params=SESSION)
            return await graph.call("DeleteApplication", {"applicationObjectId": "a1", "tenantId": "t2"})

        result = asyncio.run(go())
        assert result.has_body is False
        assert seen[0].method == "DELETE"
        assert seen[0].url.path == "/t2/applications/a1"

    def test_missing_parameter_makes_no_request(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        async def go():
            graph = _client(handler, default_params=SESSION)
            return await graph.call("GetUser", {})

        with pytest.raises(MissingParameterError, match="userId"):
            asyncio.run(go())
        assert seen == []

    def test_build_is_synchronous(self):
        graph = _client(lambda r: httpx.Response(200), default_params=SESSION)
        with pytest.raises(MissingParameterError):
            graph.build("GetUser")
        request = graph.build("GetUser", {"userId": "u1"}, extra_query={"api-version": "1.5"})
        assert request.url.params["api-version"] == "1.5"

    def test_unknown_operation(self):
        graph = _client(lambda r: httpx.Response(200))
        with pytest.raises(UnknownOperationError):
            graph.build("GetUnicorns")

    def test_endpoint_table_is_read_only(self):
        graph = _client(lambda r: httpx.Response(200))
        with pytest.raises(TypeError):
            graph.endpoints["GetUser"] = graph.endpoints["GetMe"]
        with pytest.raises(TypeError):
            load_endpoints()["GetUser"] = graph.endpoints["GetMe"]
        assert load_endpoints()["GetUser"].path == "/{tenantId}/users/{userId}"

    def test_own_copy_of_passed_table(self):
        table = dict(load_endpoints())
        graph = _client(lambda r: httpx.Response(200), endpoints=table)
        del table["GetUser"]
        assert graph.endpoint("GetUser").operation_id == "GetUser"

    def test_escape_path_option(self):
        graph = _client(lambda r: httpx.Response(200), default_params=SESSION, escape_path=True)
        request = graph.build("GetUser", {"userId": "a b/c"})
        assert request.url.raw_path.startswith(b"/t1/users/a%20b%2Fc")


class TestCallAll:
    def test_settles_every_call_in_order(self):
        def handler(request):
            if request.url.path.endswith("/users/missing"):
                return httpx.Response(404, json={"odata.error": {"code": "Request_ResourceNotFound"}})
            return httpx.Response(200, json={"path": request.url.path})

        async def go():
            graph = _client(handler, default_params=SESSION)
            return await graph.call_all([
                ("GetUser", {"userId": "u1"}),
                ("GetUser", {"userId": "missing"}),
                ("GetUser", {}),
                ("GetDirectoryRoles", None),
            ])

        ok, not_found, missing, roles = asyncio.run(go())
        assert ok.body == {"path": "/t1/users/u1"}
        assert isinstance(not_found, GraphApiError)
        assert not_found.status_code == 404
        assert isinstance(missing, MissingParameterError)
        assert roles.body == {"path": "/t1/directoryRoles"}


class TestForToken:
    def test_defaults_from_session_token(self):
        token = SessionToken(access_token="abc", id_token_claims={"tid": "t9", "oid": "o1"})

        async def go():
            async with httpx.AsyncClient() as http:
                graph = GraphClient.for_token(token, http_client=http)
                return graph.default_params, graph.build("GetUser", {"userId": token.user_id})

        defaults, request = asyncio.run(go())
        assert defaults["tenantId"] == "t9"
        assert defaults["Authorization"] == "Bearer abc"
        assert request.url.path == "/t9/users/o1"
        assert request.url.params["api-version"] == "1.6"

    def test_owned_client_closed_on_exit(self):
        async def go():
            async with GraphClient() as graph:
                client = graph._http_client
            return client

        assert asyncio.run(go()).is_closed

    def test_borrowed_client_left_open(self):
        async def go():
            http = httpx.AsyncClient()
            async with GraphClient(http_client=http):
                pass
            closed = http.is_closed
            await http.aclose()
            return closed

        assert asyncio.run(go()) is False
