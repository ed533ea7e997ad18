import json

import httpx
import pytest

from medreport.services import gemini
from medreport.utils.exceptions import NarrativeServiceError


def _reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-test")


def test_requires_api_key():
    assert gemini.is_configured() is False
    with pytest.raises(NarrativeServiceError, match="GEMINI_API_KEY"):
        gemini.generate_text("hello")


def test_posts_prompt_and_returns_text(api_key):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_reply("  Summary text.\n1. Question?  "))

    text = gemini.generate_text("  Explain this.  ", transport=httpx.MockTransport(handler))
    assert text == "Summary text.\n1. Question?"
    assert "models/gemini-test:generateContent" in seen["url"]
    assert "key=test-key" in seen["url"]
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "Explain this."


def test_http_error_status(api_key):
    transport = httpx.MockTransport(lambda request: httpx.Response(503, json={"error": "busy"}))
    with pytest.raises(NarrativeServiceError, match="HTTP 503") as info:
        gemini.generate_text("x", transport=transport)
    assert "test-key" not in str(info.value)


def test_transport_failure(api_key):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(NarrativeServiceError, match="ConnectTimeout"):
        gemini.generate_text("x", transport=httpx.MockTransport(handler))


@pytest.mark.parametrize("payload", [
    {},
    {"candidates": []},
    {"candidates": [{"content": {"parts": []}}]},
    {"candidates": [{"content": {"parts": None}}]},
    {"candidates": [{"content": {"parts": "text"}}]},
    _reply("   "),
])
def test_malformed_payloads(api_key, payload):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(NarrativeServiceError):
        gemini.generate_text("x", transport=transport)


def test_non_json_body(api_key):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(NarrativeServiceError, match="not JSON"):
        gemini.generate_text("x", transport=transport)
