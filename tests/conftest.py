import json

import httpx
import pytest

from smartfi.config import Settings
from smartfi.models import DEMO_PHONE_NUMBERS

API_BASE_URL = "https://fi.test"
GEMINI_ENDPOINT = "https://gemini.test/v1beta/models/gemini-2.0-flash:generateContent"

SAMPLE_PAYLOADS = {
    "fetch_net_worth": {
        "netWorthResponse": {"totalNetWorthValue": {"currencyCode": "INR", "units": "1250000"}}
    },
    "fetch_credit_report": {"creditReport": {"creditScore": 762}},
    "fetch_epf_details": {
        "uanAccounts": [{"rawDetails": {"overall_pf_balance": {"current_pf_balance": "211111"}}}]
    },
    "fetch_mutual_fund_transactions": {"transactions": [{"schemeName": "Nifty Index Fund", "amount": 5000}]},
    "fetch_bank_transactions": {
        "monthlyAnalytics": {"totalIncome": 120000, "totalExpenses": 70000, "savingsRate": 41.7}
    },
}


class FakeFiServer:
    """
    In-process stand-in for the Fi MCP dev server and the Gemini endpoint,
    served through httpx.MockTransport.
    """

    def __init__(self):
        self.sessions = {}
        self.failing_tools = set()
        self.login_status = 200
        self.gemini_responses = []
        self.requests = []

    def _json(self, status, body):
        return httpx.Response(status, content=json.dumps(body), headers={"Content-Type": "application/json"})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "gemini.test":
            return self._gemini(request)
        if request.url.path == "/login":
            return self._login(request)
        if request.url.path == "/mcp/stream":
            return self._stream(request)
        return self._json(404, {"error": "not found"})

    def _login(self, request):
        if self.login_status != 200:
            return self._json(self.login_status, {"message": "unavailable"})
        body = json.loads(request.content)
        if body.get("phoneNumber") not in DEMO_PHONE_NUMBERS:
            return self._json(200, {"success": False, "message": "Invalid phone number."})
        self.sessions[body["sessionId"]] = body["phoneNumber"]
        return self._json(200, {"success": True, "message": "Login successful"})

    def _stream(self, request):
        session_id = request.headers.get("Mcp-Session-Id", "")
        if session_id not in self.sessions:
            return self._json(200, {
                "jsonrpc": "2.0",
                "id": 1,
                "result": {"login_url": f"/mockWebPage?sessionId={session_id}"},
            })
        envelope = json.loads(request.content)
        if envelope["method"] == "tools/list":
            return self._json(200, {
                "jsonrpc": "2.0",
                "id": 1,
                "result": {"tools": [{"name": name} for name in SAMPLE_PAYLOADS]},
            })
        tool = envelope["params"]["name"]
        if tool in self.failing_tools:
            return self._json(200, {"jsonrpc": "2.0", "id": 1, "error": {"code": -1, "message": f"failed to load data for {tool}"}})
        return self._json(200, {"jsonrpc": "2.0", "id": 1, "result": SAMPLE_PAYLOADS[tool]})

    def _gemini(self, request):
        if self.gemini_responses:
            status, body = self.gemini_responses.pop(0)
            return self._json(status, body)
        return self._json(200, gemini_answer("AI analysis: you are on track."))

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def gemini_answer(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def fake_server():
    return FakeFiServer()


@pytest.fixture
def settings():
    return Settings(
        api_base_url=API_BASE_URL,
        state_path=None,
        gemini_endpoint=GEMINI_ENDPOINT,
        analysis_max_attempts=1,
    )


@pytest.fixture
def no_ai_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)


@pytest.fixture
def ai_key(monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
