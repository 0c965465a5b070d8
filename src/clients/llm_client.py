from __future__ import annotations

import logging
from typing import Any

import requests


LOGGER = logging.getLogger(__name__)


class LlmRequestError(RuntimeError):
    """The chat-completion call failed, timed out, or returned nothing usable."""


class ChatCompletionClient:
    """Minimal client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        temperature: float = 0.4,
        request_timeout_seconds: int = 30,
        max_tokens: int = 4096,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key.strip()
        self.model = model.strip()
        self.temperature = float(temperature)
        self.request_timeout_seconds = max(1, int(request_timeout_seconds))
        self.max_tokens = int(max_tokens)
        self._session = requests.Session()

    def complete(self, system_prompt: str, user_messages: list[Any]) -> str:
        """Send one system prompt plus user turns and return the reply text.

        Each entry of ``user_messages`` is either a plain string or a list of
        content items (``{"type": "text", ...}`` / ``{"type": "image_url", ...}``).
        The request timeout is a hard ceiling; no retry is attempted.
        """

        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        for content in user_messages:
            messages.append({"role": "user", "content": content})
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = self._session.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers,
                timeout=self.request_timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:
            raise LlmRequestError(f"Model request timed out after {self.request_timeout_seconds}s") from exc
        except (requests.RequestException, ValueError) as exc:
            raise LlmRequestError(f"Model request failed: {exc}") from exc

        return self._extract_text(data)

    def _extract_text(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LlmRequestError("Model response had no choices") from exc
        text = (content or "").strip() if isinstance(content, str) else ""
        if not text:
            raise LlmRequestError("Model returned an empty response")
        return text
