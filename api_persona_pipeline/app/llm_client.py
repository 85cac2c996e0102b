"""
Minimal client for an Ollama-compatible generation backend.

Rationale:
- Keep interface tiny: generate(input, type, options) -> str.
- One synchronous request per call with a hard timeout; no retries. Falling
  back is the caller's decision.
- httpx timeouts bound each connect/read/write separately, so the body is
  streamed and checked against a total deadline as it arrives.
- Every failure surfaces as a BackendError subclass so the caller can catch
  a single type.
"""

import json
import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import Settings

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
ANALYSIS_PROMPT_PATH = os.path.join(BASE_DIR, "prompts", "analysis.txt")


class BackendError(Exception):
    """The generation backend could not produce a usable response."""


class RequestFailed(BackendError):
    """Transport error, timeout or non-2xx status."""


class InvalidResponse(BackendError):
    """The backend replied, but without a usable text field."""


def _read_prompt(path: str) -> str:
    """Read a prompt text file."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def build_prompt(input_text: str, input_type: str) -> str:
    template = _read_prompt(ANALYSIS_PROMPT_PATH)
    return template.format(input_type=input_type, input=input_text)


class OllamaClient:
    """
    Talks to the backend's /api/generate and /api/tags endpoints.

    `transport` is handed to httpx unchanged; tests pass an
    httpx.MockTransport here. `clock` measures the total deadline.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.transport = transport
        self.clock = clock

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(
            base_url=self.settings.ollama_base_url,
            timeout=timeout,
            transport=self.transport,
            headers={"Content-Type": "application/json"},
        )

    def _request_json(self, method: str, path: str, timeout: float, payload: Optional[Dict[str, Any]] = None) -> Any:
        """
        Send one request and decode its JSON body, failing once `timeout`
        seconds have passed in total.

        Raises RequestFailed for transport/status errors and the deadline,
        ValueError when the body is not JSON.
        """
        deadline = self.clock() + timeout
        body = bytearray()
        try:
            with self._client(timeout) as client:
                with client.stream(method, path, json=payload) as response:
                    response.raise_for_status()
                    for chunk in response.iter_bytes():
                        body.extend(chunk)
                        if self.clock() >= deadline:
                            raise RequestFailed(f"{path} exceeded the {timeout:.1f}s deadline")
        except httpx.HTTPError as e:
            raise RequestFailed(f"{type(e).__name__}: {e}") from e

        return json.loads(bytes(body))

    def resolve_model(self, options: Optional[Dict[str, Any]] = None) -> str:
        """Model requested in options, else the configured default."""
        model = (options or {}).get("model")
        if isinstance(model, str) and model.strip():
            return model.strip()
        return self.settings.model

    def generate(self, input_text: str, input_type: str, options: Optional[Dict[str, Any]] = None) -> str:
        """
        Ask the backend for a six-section analysis of `input_text`.

        Raises RequestFailed on transport/timeout/status errors and
        InvalidResponse when the reply carries no text.
        """
        model = self.resolve_model(options)

        try:
            prompt = build_prompt(input_text, input_type)
        except OSError as e:
            raise RequestFailed(f"Prompt template unavailable: {e}") from e

        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.settings.temperature,
                "max_tokens": self.settings.max_tokens,
            },
        }

        logger.info(f"Calling generation backend with model: {model}")
        try:
            data = self._request_json("POST", "/api/generate", self.settings.timeout_seconds, payload)
        except RequestFailed as e:
            logger.error(f"Generation backend request failed: {e}")
            raise RequestFailed(f"Ollama API failed: {e}") from e
        except ValueError as e:
            raise InvalidResponse("Invalid response from Ollama API: body is not JSON") from e

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise InvalidResponse("Invalid response from Ollama API")

        logger.info("Generation backend response received")
        return text

    def list_models(self) -> List[str]:
        """Names of the models the backend reports; raises BackendError if unreachable."""
        try:
            data = self._request_json("GET", "/api/tags", self.settings.probe_timeout_seconds)
        except RequestFailed as e:
            raise RequestFailed(f"Ollama not available: {e}") from e
        except ValueError as e:
            raise InvalidResponse("Model list is not JSON") from e

        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return []
        return [m["name"] for m in models if isinstance(m, dict) and m.get("name")]
