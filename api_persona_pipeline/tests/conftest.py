"""Shared fixtures: settings and a fake Ollama backend."""
import json

import httpx
import pytest

from api_persona_pipeline.app.config import Settings

LIVE_ANALYSIS = """**Purpose**: Order management for a retail backend
**Audience**: Backend developers at retail companies
**Data Sensitivity**: high
**Authentication Friction**: low
**Business Model**: Monetized per call
**Example Use Case**: Syncing orders into an ERP"""


class FakeOllama:
    """Records requests and answers like an Ollama server (or fails on demand)."""

    def __init__(self, generate=None, tags=None, error=None):
        self.generate = generate if generate is not None else {"response": LIVE_ANALYSIS}
        self.tags = tags if tags is not None else {"models": [{"name": "llama2"}, {"name": "mistral"}]}
        self.error = error
        self.status_code = 200
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(f"simulated {self.error.__name__}", request=request)
        if request.url.path == "/api/generate":
            body = self.generate
        elif request.url.path == "/api/tags":
            body = self.tags
        else:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(body, (bytes, str)):
            return httpx.Response(self.status_code, content=body)
        return httpx.Response(self.status_code, json=body)

    def sent_json(self, index=-1):
        return json.loads(self.requests[index].content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def settings():
    return Settings(
        ollama_base_url="http://ollama.test",
        model="llama2",
        treblle_api_key="",
        treblle_project_id="",
        jwt_secret="",
        environment="test",
    )


@pytest.fixture
def fake_ollama():
    return FakeOllama()


@pytest.fixture
def down_ollama():
    return FakeOllama(error=httpx.ConnectError)
