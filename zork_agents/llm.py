"""LLM client for the three agents.

Every agent talks to the model through one callable:

    async def __call__(self, stage: str, prompt: str) -> str: ...

``stage`` is "room_generator", "player" or "game_master" and only shows up
in logs and error messages. Whatever goes wrong between the request and the
completion text (transport, status code, body shape) comes out as
``LLMError``, which is the one exception the agents turn into their
fallbacks.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


class LLMError(RuntimeError):
    """The model backend could not produce a completion."""


# provider_format -> (endpoint path, key of the list holding {"text": ...})
PROVIDER_FORMATS: dict[str, tuple[str, str]] = {
    "koboldcpp": ("/api/v1/generate", "results"),
    "openai": ("/v1/completions", "choices"),
}


class HttpLLM:
    """Completion client for a KoboldCpp or OpenAI-compatible server.

    Built from the ``llm`` group of the config. Bad settings (an unknown
    format, a timeout that is not a positive number) raise ``LLMError`` here
    rather than on the first turn.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: str = "koboldcpp",
        model: str = "",
        timeout: Any = 120.0,
    ) -> None:
        if provider_format not in PROVIDER_FORMATS:
            raise LLMError(
                f"Unknown provider_format {provider_format!r}, "
                f"expected one of {', '.join(PROVIDER_FORMATS)}"
            )
        try:
            self.timeout = float(timeout)
        except (TypeError, ValueError) as e:
            raise LLMError(f"LLM timeout must be a number of seconds, got {timeout!r}") from e
        if self.timeout <= 0:
            raise LLMError(f"LLM timeout must be positive, got {timeout!r}")

        self.base_url = provider_url.rstrip("/")
        self.provider_format = provider_format
        self.model = model
        self._api_key = api_key
        path, self._result_key = PROVIDER_FORMATS[provider_format]
        self.endpoint = self.base_url + path

    def _payload(self, prompt: str) -> dict[str, str]:
        payload = {"prompt": prompt}
        if self.provider_format == "openai" and self.model:
            payload["model"] = self.model
        return payload

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            return {}
        return {"Authorization": f"Bearer {self._api_key}"}

    def _completion_text(self, stage: str, data: Any) -> str:
        entries = data.get(self._result_key) if isinstance(data, dict) else None
        if not entries or not isinstance(entries[0], dict) or "text" not in entries[0]:
            raise LLMError(
                f"{stage}: Unexpected response format from {self.provider_format} backend"
            )
        return str(entries[0]["text"])

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("%s -> %s (%d chars)", stage, self.endpoint, len(prompt))
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.endpoint, json=self._payload(prompt), headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"{stage}: Cannot connect to LLM backend at {self.base_url}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"{stage}: LLM backend timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"{stage}: LLM backend returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise LLMError(f"{stage}: LLM request failed ({type(e).__name__}: {e})") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError(f"{stage}: LLM backend returned a non-JSON body") from e
        text = self._completion_text(stage, data)
        logger.debug("%s <- %d chars", stage, len(text))
        return text
