"""Chat-completion gateway for OpenAI compatible endpoints."""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from wiki_llm.config import CompletionConfig
from wiki_llm.errors import TransportError, UnexpectedResponseFormatError

logger = structlog.get_logger(__name__)


class CompletionGateway(Protocol):
    """Sends one chat-completion request body and returns the decoded response."""

    def complete(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST ``payload`` and return the JSON response object."""


class OpenAICompatibleCompletionGateway:
    """Posts to ``api_url`` with an optional bearer token; nothing is retried."""

    def __init__(
        self,
        config: CompletionConfig | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config or CompletionConfig()
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        self._client = client or httpx.Client(
            timeout=self.config.timeout_seconds,
            headers=headers,
        )

    def close(self) -> None:
        self._client.close()

    def complete(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._client.post(self.config.api_url, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(f"Completion request failed: {exc}") from exc

        if response.status_code != 200:
            raise TransportError(
                f"API request failed with HTTP code: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise UnexpectedResponseFormatError(
                f"Completion endpoint returned invalid JSON: {response.text[:200]}"
            ) from exc

        if not isinstance(result, dict):
            raise UnexpectedResponseFormatError("Unexpected API response format")
        logger.debug("completion_received", model=payload.get("model"), usage=result.get("usage"))
        return result
