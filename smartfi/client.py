import logging
from typing import Any, List, Optional
from urllib.parse import urljoin

import httpx

from smartfi.utils.error_handler import (
    ApiError,
    FetchTimeoutError,
    LoginRequiredError,
    NetworkError,
)

logger = logging.getLogger(__name__)

DEMO_OTP = "demo"


class DataSourceClient:
    """
    Calls tools on the remote Fi MCP API over its JSON-RPC streaming endpoint.

    Every request carries the session id in the ``Mcp-Session-Id`` header; the
    server uses it to look up which (demo) login the session completed.
    """

    def __init__(
        self,
        base_url: str,
        session_id: str,
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_id = session_id
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def _post(self, path: str, body: dict, headers: Optional[dict] = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            return await self._http.post(url, json=body, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"Request to {path} timed out after {self.timeout:g}s") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Network error calling {path}: {e}") from e

    @staticmethod
    def _json_object(response: httpx.Response, path: str) -> dict:
        if not response.is_success:
            raise ApiError(f"HTTP {response.status_code} from {path}", status_code=response.status_code)
        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(f"Malformed response from {path}: not JSON", status_code=response.status_code) from e
        if not isinstance(body, dict):
            raise ApiError(f"Malformed response from {path}: expected an object", status_code=response.status_code)
        return body

    async def _rpc(self, method: str, params: dict) -> Any:
        envelope = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }
        response = await self._post("/mcp/stream", envelope, headers={"Mcp-Session-Id": self.session_id})
        body = self._json_object(response, "/mcp/stream")

        error = body.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ApiError(message or "API call failed")

        result = body.get("result")
        if isinstance(result, dict) and result.get("login_url"):
            login_url = urljoin(self.base_url + "/", str(result["login_url"]))
            logger.info(f"Login required before {method} can return data: {login_url}")
            raise LoginRequiredError(login_url)

        return result

    async def call(self, tool_name: str) -> Any:
        """Invoke one remote tool and return its payload."""
        logger.debug(f"Calling tool {tool_name}")
        try:
            return await self._rpc("tools/call", {"name": tool_name, "arguments": {}})
        except LoginRequiredError:
            raise
        except Exception as e:
            logger.error(f"Error calling {tool_name}: {e}")
            raise

    async def list_tools(self) -> List[str]:
        """Names of the tools the server advertises."""
        result = await self._rpc("tools/list", {})
        tools = result.get("tools", []) if isinstance(result, dict) else []
        return [t["name"] for t in tools if isinstance(t, dict) and "name" in t]

    async def login(self, phone_number: str) -> None:
        """Complete the demo login for this session. Raises ApiError when the server refuses."""
        body = {
            "sessionId": self.session_id,
            "phoneNumber": phone_number,
            "otp": DEMO_OTP,
        }
        response = await self._post("/login", body)
        if not response.is_success:
            raise ApiError(f"HTTP {response.status_code} from /login", status_code=response.status_code)
        try:
            payload = response.json()
        except ValueError:
            # A 2xx without a JSON body still counts as a completed login
            return
        if isinstance(payload, dict) and payload.get("success") is False:
            raise ApiError(payload.get("message") or "Login failed", status_code=response.status_code)
