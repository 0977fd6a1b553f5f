import httpx
import pytest

from docvault.config import Settings
from docvault.credentials import StaticCredentialProvider
from docvault.errors import (
    Forbidden,
    LinkExpiredOrInvalid,
    NetworkError,
    ServiceError,
    Unauthorized,
    server_message,
)
from docvault.transport import VaultTransport

BASE_URL = "http://vault.test/api"


class ExplodingCredentials:
    def get_token(self):
        raise AssertionError("credentials must not be consulted")

    def invalidate(self):
        raise AssertionError("credentials must not be consulted")


def build_transport(handler, credentials=None) -> tuple[VaultTransport, list[httpx.Request]]:
    seen = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record), base_url=BASE_URL)
    transport = VaultTransport(Settings(api_base_url=BASE_URL), credentials, client=client)
    return transport, seen


def test_server_message_reads_error_envelope():
    response = httpx.Response(400, json={"error": {"code": "bad_request", "message": "expiryDays must be positive"}})
    assert server_message(response) == "expiryDays must be positive"


def test_server_message_reads_flat_fields():
    assert server_message(httpx.Response(500, json={"message": "disk full"})) == "disk full"
    assert server_message(httpx.Response(500, json={"error": "boom"})) == "boom"
    assert server_message(httpx.Response(422, json={"detail": "invalid"})) == "invalid"


def test_server_message_ignores_non_json_bodies():
    assert server_message(httpx.Response(502, text="<html>Bad Gateway</html>")) is None
    assert server_message(httpx.Response(500, json=["not", "a", "dict"])) is None


@pytest.mark.asyncio
async def test_authenticated_request_attaches_bearer():
    transport, seen = build_transport(
        lambda request: httpx.Response(200, json=[]),
        StaticCredentialProvider("secret"),
    )
    async with transport:
        await transport.request("GET", "documents")

    assert seen[0].headers["authorization"] == "Bearer secret"
    assert seen[0].url == httpx.URL("http://vault.test/api/documents")


@pytest.mark.asyncio
async def test_anonymous_request_never_consults_credentials():
    transport, seen = build_transport(lambda request: httpx.Response(200, content=b"ok"), ExplodingCredentials())
    async with transport:
        response = await transport.request("GET", "documents/share/abc", authenticated=False)

    assert response.content == b"ok"
    assert "authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_missing_credential_fails_before_request():
    transport, seen = build_transport(lambda request: httpx.Response(200), StaticCredentialProvider(None))
    async with transport:
        with pytest.raises(Unauthorized):
            await transport.request("GET", "documents")
    assert seen == []


@pytest.mark.asyncio
async def test_rejected_credential_is_invalidated():
    credentials = StaticCredentialProvider("stale")
    transport, _ = build_transport(lambda request: httpx.Response(401, json={"message": "token expired"}), credentials)
    async with transport:
        with pytest.raises(Unauthorized) as exc_info:
            await transport.request("GET", "documents")

    assert exc_info.value.detail == "token expired"
    assert credentials.get_token() is None


@pytest.mark.asyncio
async def test_forbidden_keeps_distinct_message():
    transport, _ = build_transport(
        lambda request: httpx.Response(403, json={"error": {"code": "forbidden", "message": "not yours"}}),
        StaticCredentialProvider("secret"),
    )
    async with transport:
        with pytest.raises(Forbidden) as exc_info:
            await transport.request("POST", "documents/share", forbidden="You may not share this", fallback="Failed")

    assert exc_info.value.message == "You may not share this"
    assert exc_info.value.detail == "not yours"
    assert exc_info.value.to_advisory().kind == "forbidden"


@pytest.mark.asyncio
async def test_service_error_prefers_server_message():
    responses = iter([httpx.Response(500, json={"message": "database offline"}), httpx.Response(500)])
    transport, _ = build_transport(lambda request: next(responses), StaticCredentialProvider("secret"))
    async with transport:
        with pytest.raises(ServiceError) as with_message:
            await transport.request("GET", "documents", fallback="Failed to fetch documents")
        with pytest.raises(ServiceError) as without_message:
            await transport.request("GET", "documents", fallback="Failed to fetch documents")

    assert with_message.value.message == "database offline"
    assert with_message.value.status_code == 500
    assert without_message.value.message == "Failed to fetch documents"


@pytest.mark.asyncio
async def test_not_found_mapping_is_opt_in():
    transport, _ = build_transport(lambda request: httpx.Response(404), StaticCredentialProvider("secret"))
    async with transport:
        with pytest.raises(LinkExpiredOrInvalid):
            await transport.request("GET", "documents/share/x", authenticated=False, not_found=LinkExpiredOrInvalid)
        with pytest.raises(ServiceError):
            await transport.request("GET", "documents/9", fallback="Failed to fetch document")


@pytest.mark.asyncio
async def test_accepted_status_is_returned():
    transport, _ = build_transport(lambda request: httpx.Response(404), StaticCredentialProvider("secret"))
    async with transport:
        response = await transport.request("DELETE", "documents/9", accept=(404,))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_connection_failure_becomes_network_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport, _ = build_transport(refuse, StaticCredentialProvider("secret"))
    async with transport:
        with pytest.raises(NetworkError) as exc_info:
            await transport.request("GET", "documents")

    advisory = exc_info.value.to_advisory()
    assert advisory.kind == "network_error"
    assert advisory.transient is True
    assert "try again" in advisory.message


@pytest.mark.asyncio
async def test_undecodable_body_becomes_service_error():
    def corrupt(request):
        return httpx.Response(200, headers={"content-type": "image/png", "content-encoding": "gzip"}, content=b"not gzip")

    transport, _ = build_transport(corrupt, StaticCredentialProvider("secret"))
    async with transport:
        with pytest.raises(ServiceError) as exc_info:
            await transport.request("GET", "documents/view/7", fallback="Failed to view document")

    assert exc_info.value.message == "Failed to view document"
    assert exc_info.value.to_advisory().transient is False


@pytest.mark.asyncio
async def test_token_set_after_invalidation_is_used():
    credentials = StaticCredentialProvider("stale")
    responses = iter([httpx.Response(401), httpx.Response(200, json=[])])
    transport, seen = build_transport(lambda request: next(responses), credentials)
    async with transport:
        with pytest.raises(Unauthorized):
            await transport.request("GET", "documents")
        credentials.set_token("fresh")
        await transport.request("GET", "documents")

    assert seen[1].headers["authorization"] == "Bearer fresh"
