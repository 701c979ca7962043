from __future__ import annotations

import json
import logging
import os
import socket
import time
import urllib.error
import urllib.request
from typing import Any

logger = logging.getLogger(__name__)

# Transport and decoding failures the caller never sees; they surface as an empty reply.
_SOFT_FAILURES = (socket.timeout, urllib.error.URLError, TimeoutError, ConnectionError, json.JSONDecodeError)


class LLMClient:
    """
    Completion backend for category suggestions and spending insights.

    Talks to an Ollama `/api/generate` endpoint configured through
    OLLAMA_BASE_URL / OLLAMA_MODEL / OLLAMA_TIMEOUT_SECONDS / OLLAMA_TEMPERATURE.
    `complete` returns the generated text, or "" when the backend is
    unreachable or answers with something that is not JSON; the categorizer
    and insight wrappers map "" to their fallbacks.
    """

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434")).rstrip("/")
        self.model = model or os.getenv("OLLAMA_MODEL", "llama3.1:8b")
        self.timeout_seconds = timeout_seconds or float(os.getenv("OLLAMA_TIMEOUT_SECONDS", "60"))

    def _payload(self, prompt: str, json_mode: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": float(os.getenv("OLLAMA_TEMPERATURE", "0.1"))},
        }
        # Constrains the model to a JSON document; used for category replies.
        if json_mode:
            payload["format"] = "json"
        return payload

    def _post(self, payload: dict[str, Any]) -> Any:
        req = urllib.request.Request(
            url=f"{self.base_url}/api/generate",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
            return json.loads(resp.read().decode("utf-8"))

    def complete(self, prompt: str, json_mode: bool = False) -> str:
        started = time.perf_counter()
        logger.info(
            "Completion request model=%s prompt_chars=%d json_mode=%s timeout=%.1fs",
            self.model,
            len(prompt),
            json_mode,
            self.timeout_seconds,
        )
        try:
            body = self._post(self._payload(prompt, json_mode))
        except _SOFT_FAILURES as exc:
            logger.warning(
                "Completion backend %s unavailable after %.2fs: %s",
                self.base_url,
                time.perf_counter() - started,
                exc,
            )
            return ""

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            logger.warning("Completion reply from model=%s had no text response", self.model)
            return ""
        logger.info("Completion reply in %.2fs reply_chars=%d", time.perf_counter() - started, len(text))
        return text.strip()
