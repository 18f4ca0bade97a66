"""OpenAI-compatible embedding client."""

import logging
from typing import Any, Optional

import httpx

from vectorqueue.config import settings
from vectorqueue.engine.errors import (
    EmbeddingError,
    EmbeddingInvalidRequest,
    EmbeddingRateLimited,
    EmbeddingUnavailable,
)
from vectorqueue.integrations.base import EmbeddingProvider, EmbeddingResult
from vectorqueue.utils.tokens import count_prompt_tokens

logger = logging.getLogger(__name__)


class OpenAIEmbeddingClient(EmbeddingProvider):
    """
    Calls ``POST {base_url}/embeddings`` and maps provider failures onto the
    embedding error family.

    Usage:
        client = OpenAIEmbeddingClient()
        result = await client.embed("hello", "text-embedding-ada-002")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.embedding_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.embedding_api_key
        self.timeout = timeout_seconds or settings.embedding_timeout_seconds
        self._transport = transport

    async def embed(self, text: str, model: str) -> EmbeddingResult:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/embeddings",
                    json={"model": model, "input": text},
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            raise EmbeddingUnavailable(f"Embedding request timed out: {e}") from e
        except httpx.TransportError as e:
            raise EmbeddingUnavailable(f"Embedding request failed: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        data = response.json()
        try:
            vector = [float(v) for v in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingError(
                "invalid message format",
                status_code=response.status_code,
                payload=data,
            ) from e

        usage = data.get("usage") or {}
        tokens = usage.get("total_tokens") or usage.get("prompt_tokens")
        if tokens is None:
            tokens = count_prompt_tokens(text)

        return EmbeddingResult(vector=vector, tokens=int(tokens))

    def _error_from_response(self, response: httpx.Response) -> EmbeddingError:
        """Translate an error response into the matching exception."""
        payload: Any
        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        error = payload.get("error") if isinstance(payload, dict) else None
        error_type = error.get("type") if isinstance(error, dict) else None
        message = (
            error.get("message") if isinstance(error, dict) and error.get("message")
            else f"Embedding provider returned {response.status_code}"
        )
        error_code = _int_or_none(error.get("code")) if isinstance(error, dict) else None

        if response.status_code == 429:
            return EmbeddingRateLimited(message, payload=payload)
        if error_type == "invalid_request_error" or response.status_code in (400, 422):
            return EmbeddingInvalidRequest(
                message,
                status_code=response.status_code,
                error_type=error_type,
                payload=payload,
            )
        if response.status_code >= 500:
            return EmbeddingUnavailable(
                message,
                status_code=response.status_code,
                payload=payload,
                error_code=error_code,
            )
        return EmbeddingError(
            message,
            status_code=response.status_code,
            error_type=error_type,
            payload=payload,
            error_code=error_code,
        )


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
