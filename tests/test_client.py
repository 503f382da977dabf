import json

import httpx
import pytest

from smartfi.client import DataSourceClient
from smartfi.utils.error_handler import (
    ApiError,
    FetchTimeoutError,
    LoginRequiredError,
    NetworkError,
)

from conftest import API_BASE_URL, SAMPLE_PAYLOADS


def make_client(handler, session_id="mcp-session-test"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DataSourceClient(API_BASE_URL, session_id, timeout=15.0, http_client=http)


def json_response(body, status=200):
    return httpx.Response(status, json=body)


@pytest.mark.asyncio
async def test_call_sends_jsonrpc_envelope_with_session_header():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["method"] = request.method
        seen["session"] = request.headers.get("Mcp-Session-Id")
        seen["body"] = json.loads(request.content)
        return json_response({"jsonrpc": "2.0", "id": 1, "result": SAMPLE_PAYLOADS["fetch_net_worth"]})

    client = make_client(handler)
    result = await client.call("fetch_net_worth")

    assert result == SAMPLE_PAYLOADS["fetch_net_worth"]
    assert seen["method"] == "POST"
    assert seen["url"] == f"{API_BASE_URL}/mcp/stream"
    assert seen["session"] == "mcp-session-test"
    assert seen["body"] == {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "tools/call",
        "params": {"name": "fetch_net_worth", "arguments": {}},
    }


@pytest.mark.asyncio
async def test_error_envelope_raises_api_error():
    client = make_client(lambda r: json_response({"error": {"code": -1, "message": "no data for tool"}}))
    with pytest.raises(ApiError, match="no data for tool"):
        await client.call("fetch_epf_details")


@pytest.mark.asyncio
async def test_error_checked_before_login_url():
    body = {"error": {"message": "boom"}, "result": {"login_url": "https://x"}}
    client = make_client(lambda r: json_response(body))
    with pytest.raises(ApiError):
        await client.call("fetch_net_worth")


@pytest.mark.asyncio
async def test_login_url_raises_login_required_and_is_never_data():
    client = make_client(lambda r: json_response({"result": {"login_url": "https://x"}}))
    with pytest.raises(LoginRequiredError) as exc_info:
        await client.call("fetch_net_worth")
    assert exc_info.value.login_url == "https://x"


@pytest.mark.asyncio
async def test_relative_login_url_is_resolved_against_base():
    client = make_client(lambda r: json_response({"result": {"login_url": "/mockWebPage?sessionId=abc"}}))
    with pytest.raises(LoginRequiredError) as exc_info:
        await client.call("fetch_credit_report")
    assert exc_info.value.login_url == f"{API_BASE_URL}/mockWebPage?sessionId=abc"


@pytest.mark.asyncio
async def test_non_2xx_status_carries_status_code():
    client = make_client(lambda r: httpx.Response(502, text="bad gateway"))
    with pytest.raises(ApiError) as exc_info:
        await client.call("fetch_bank_transactions")
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_malformed_body_is_api_error():
    client = make_client(lambda r: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(ApiError, match="Malformed"):
        await client.call("fetch_net_worth")


@pytest.mark.asyncio
async def test_timeout_is_distinct_from_network_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)
    with pytest.raises(FetchTimeoutError):
        await client.call("fetch_net_worth")


@pytest.mark.asyncio
async def test_connect_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(NetworkError):
        await client.call("fetch_net_worth")


@pytest.mark.asyncio
async def test_login_posts_demo_credentials():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return json_response({"success": True, "message": "Login successful"})

    client = make_client(handler, session_id="mcp-session-login")
    await client.login("2222222222")

    assert seen["path"] == "/login"
    assert seen["body"] == {"sessionId": "mcp-session-login", "phoneNumber": "2222222222", "otp": "demo"}


@pytest.mark.asyncio
async def test_login_rejected_by_server():
    client = make_client(lambda r: json_response({"success": False, "message": "Invalid phone number."}))
    with pytest.raises(ApiError, match="Invalid phone number"):
        await client.login("0000000000")


@pytest.mark.asyncio
async def test_login_http_failure():
    client = make_client(lambda r: httpx.Response(503))
    with pytest.raises(ApiError) as exc_info:
        await client.login("2222222222")
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_list_tools(fake_server):
    fake_server.sessions["mcp-session-test"] = "2222222222"
    client = DataSourceClient(API_BASE_URL, "mcp-session-test", http_client=fake_server.http_client())
    tools = await client.list_tools()
    assert "fetch_net_worth" in tools
    assert len(tools) == 5
