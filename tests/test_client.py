"""Tests for the ServiceClient base class."""

from dataclasses import dataclass

import httpx
import pytest

from service_client_core import ServiceClient
from service_client_core.config import ClientOptions, RetryOptions
from service_client_core.decoding import HeaderField, ResponseDecoder, json_body
from service_client_core.errors import NotFoundError, ServerError
from service_client_core.pagination import token_as_next_link, token_from_field
from service_client_core.testing import ScriptedHandler, StubCredential, create_json_response

ENDPOINT = "https://management.azure.com"
FAST_RETRY = ClientOptions(retry=RetryOptions(initial_backoff=0, jitter=0))


@dataclass
class DeleteResult:
    request_id: str


class FeaturesClient(ServiceClient):
    """Minimal hand-written stand-in for a generated client."""

    def __init__(self, credential=None, **kwargs):
        super().__init__(ENDPOINT, credential, api_version="2021-07-01", **kwargs)

    async def get_feature(self, name: str) -> dict:
        request = self.build_request("GET", f"/providers/Microsoft.Features/features/{name}")
        return await self.execute(request, ResponseDecoder(200, body=json_body()))

    async def delete_feature(self, name: str) -> DeleteResult:
        request = self.build_request("DELETE", f"/providers/Microsoft.Features/features/{name}")
        return await self.execute(
            request,
            ResponseDecoder((200, 204), headers={"request_id": HeaderField("x-ms-request-id")}, model=DeleteResult),
        )

    def list_operations(self):
        request = self.build_request("GET", "/providers/Microsoft.Features/operations")
        return self.paginate(
            request,
            ResponseDecoder(200, body=json_body()),
            next_token=token_from_field("nextLink"),
            apply_token=token_as_next_link(),
        )


class TestBuildRequest:
    @pytest.mark.unit
    def test_api_version_is_appended(self):
        client = FeaturesClient()

        request = client.build_request("GET", "/subscriptions/sub-1/resourcegroups")

        assert str(request.url) == f"{ENDPOINT}/subscriptions/sub-1/resourcegroups?api-version=2021-07-01"

    @pytest.mark.unit
    def test_explicit_api_version_parameter_is_kept(self):
        client = FeaturesClient()

        request = client.build_request("GET", "/things", params={"api-version": "2019-01-01"})

        assert request.url.params.get_list("api-version") == ["2019-01-01"]

    @pytest.mark.unit
    def test_options_api_version_overrides_default(self):
        client = FeaturesClient(options=ClientOptions(api_version="2023-01-01"))

        assert client.build_request("GET", "/things").url.params["api-version"] == "2023-01-01"

    @pytest.mark.unit
    def test_none_params_are_skipped(self):
        client = FeaturesClient()

        request = client.build_request("GET", "/things", params={"$filter": "state eq 'on'", "$top": None})

        assert request.url.params["$filter"] == "state eq 'on'"
        assert "$top" not in request.url.params

    @pytest.mark.unit
    def test_json_body(self):
        client = FeaturesClient()

        request = client.build_request("PUT", "/things/a", json={"tags": {"env": "prod"}})

        assert request.headers["content-type"] == "application/json"
        assert request.content == b'{"tags": {"env": "prod"}}'

    @pytest.mark.unit
    def test_default_scope_from_endpoint(self):
        assert FeaturesClient().scopes == (f"{ENDPOINT}/.default",)


class TestExecute:
    @pytest.mark.unit
    async def test_authenticated_call_is_decoded(self):
        handler = ScriptedHandler([create_json_response(200, {"name": "preview"})])
        credential = StubCredential()

        async with FeaturesClient(credential, transport=httpx.MockTransport(handler)) as client:
            feature = await client.get_feature("preview")

        assert feature == {"name": "preview"}
        sent = handler.requests[0]
        assert sent.headers["Authorization"] == "Bearer token-1"
        assert sent.headers["User-Agent"].startswith("service-client-core/")
        assert "x-ms-client-request-id" in sent.headers
        assert credential.calls == [(f"{ENDPOINT}/.default",)]

    @pytest.mark.unit
    async def test_token_is_reused_across_calls(self):
        handler = ScriptedHandler([create_json_response(200, {})])
        credential = StubCredential()

        async with FeaturesClient(credential, transport=httpx.MockTransport(handler)) as client:
            await client.get_feature("a")
            await client.get_feature("b")

        assert credential.call_count == 1

    @pytest.mark.unit
    async def test_error_status_is_structured(self):
        handler = ScriptedHandler(
            [create_json_response(404, {"error": {"code": "FeatureNotFound", "message": "No such feature"}})]
        )

        async with FeaturesClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(NotFoundError) as exc_info:
                await client.get_feature("missing")

        assert exc_info.value.problem_detail.type == "FeatureNotFound"
        assert exc_info.value.method == "GET"

    @pytest.mark.unit
    async def test_transient_failure_is_retried(self):
        handler = ScriptedHandler([httpx.Response(503), create_json_response(200, {"name": "a"})])

        async with FeaturesClient(transport=httpx.MockTransport(handler), options=FAST_RETRY) as client:
            assert await client.get_feature("a") == {"name": "a"}

        assert handler.call_count == 2

    @pytest.mark.unit
    async def test_exhausted_retries_surface_last_status(self):
        handler = ScriptedHandler([httpx.Response(500)])

        async with FeaturesClient(transport=httpx.MockTransport(handler), options=FAST_RETRY) as client:
            with pytest.raises(ServerError):
                await client.get_feature("a")

        assert handler.call_count == 4

    @pytest.mark.unit
    async def test_header_only_result(self):
        handler = ScriptedHandler([httpx.Response(204, headers={"x-ms-request-id": "req-9"})])

        async with FeaturesClient(transport=httpx.MockTransport(handler)) as client:
            result = await client.delete_feature("a")

        assert result == DeleteResult("req-9")


class TestPaginate:
    @pytest.mark.unit
    async def test_follows_next_links(self):
        handler = ScriptedHandler(
            [
                create_json_response(
                    200,
                    {
                        "value": [{"name": "read"}],
                        "nextLink": f"{ENDPOINT}/providers/Microsoft.Features/operations?$skiptoken=p2",
                    },
                ),
                create_json_response(200, {"value": [{"name": "write"}]}),
            ]
        )

        async with FeaturesClient(StubCredential(), transport=httpx.MockTransport(handler)) as client:
            pages = client.list_operations()
            names = [op["name"] async for op in pages.items(lambda value: value["value"])]

        assert names == ["read", "write"]
        assert handler.requests[1].url.params["api-version"] == "2021-07-01"
        assert all(r.headers["Authorization"] == "Bearer token-1" for r in handler.requests)

    @pytest.mark.unit
    async def test_nothing_sent_until_iterated(self):
        handler = ScriptedHandler([create_json_response(200, {"value": []})])

        async with FeaturesClient(transport=httpx.MockTransport(handler)) as client:
            client.list_operations()

        assert handler.call_count == 0
