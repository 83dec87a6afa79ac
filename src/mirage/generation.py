"""Client for the remote text-generation API.

All generation traffic goes through a single GenerationClient sharing the
lifespan's ``httpx.AsyncClient``. Two provider shapes are supported: the
hosted Anthropic messages API and any self-hosted OpenAI-compatible
``/chat/completions`` endpoint (vLLM, Ollama, Transformers Serve).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from mirage import __version__
from mirage.errors import ErrorCode, MirageError

if TYPE_CHECKING:
    from mirage.config import GenerationSettings

log = structlog.get_logger()

ANTHROPIC_VERSION = "2023-06-01"


def build_http_client(timeout_seconds: float = 120.0) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds, connect=10.0),
        headers={"User-Agent": f"mirage/{__version__}"},
        limits=httpx.Limits(
            max_connections=20,
            max_keepalive_connections=10,
        ),
    )


def extract_text(provider: str, body: Any) -> str:
    """Pull the generated text out of a provider response body.

    Raises ValueError when the body does not have the expected shape.
    """
    try:
        if provider == "anthropic":
            text = body["content"][0]["text"]
        else:
            text = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError(f"Unexpected {provider} response shape") from exc
    if not isinstance(text, str) or not text.strip():
        raise ValueError(f"Empty completion from {provider}")
    return text


class GenerationClient:
    """Sends one prompt, returns one completion."""

    def __init__(self, client: httpx.AsyncClient, settings: GenerationSettings) -> None:
        self._client = client
        self._settings = settings

    def _request_parts(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        settings = self._settings
        payload: dict[str, Any] = {
            "model": settings.model,
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {"Content-Type": "application/json"}

        if settings.provider == "anthropic":
            headers["x-api-key"] = settings.api_key
            headers["anthropic-version"] = ANTHROPIC_VERSION
            return f"{settings.resolved_api_base}/v1/messages", headers, payload

        if settings.api_key:
            headers["Authorization"] = f"Bearer {settings.api_key}"
        return f"{settings.resolved_api_base}/chat/completions", headers, payload

    async def generate(self, prompt: str) -> str:
        """Return the raw completion text.

        Raises MirageError with GENERATION_RATE_LIMITED on HTTP 429 and
        GENERATION_FAILED on network errors, other non-2xx responses, and
        malformed bodies.
        """
        provider = self._settings.provider
        url, headers, payload = self._request_parts(prompt)

        try:
            response = await self._client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            log.warning("generation_request_error", provider=provider, error=str(exc))
            raise MirageError(
                code=ErrorCode.GENERATION_FAILED,
                message=f"Network error calling the generation API: {exc}",
                suggestion="The generation service may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        if response.status_code == 429:
            log.warning(
                "generation_rate_limited",
                provider=provider,
                model=self._settings.model,
                hint="switch model or API key, or lower traffic",
            )
            raise MirageError(
                code=ErrorCode.GENERATION_RATE_LIMITED,
                message="The generation API is rate limiting requests",
                suggestion="Please try again in a moment.",
                recoverable=True,
            )

        if not response.is_success:
            log.warning(
                "generation_http_error",
                provider=provider,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise MirageError(
                code=ErrorCode.GENERATION_FAILED,
                message=f"Generation API returned HTTP {response.status_code}",
                suggestion="The generation service may be temporarily unavailable.",
                recoverable=response.status_code >= 500,
            )

        try:
            text = extract_text(provider, response.json())
        except ValueError as exc:
            log.warning("generation_malformed_response", provider=provider, error=str(exc))
            raise MirageError(
                code=ErrorCode.GENERATION_FAILED,
                message=str(exc),
                suggestion="The generation service returned an unusable response.",
                recoverable=True,
            ) from exc

        log.info("generation_complete", provider=provider, content_length=len(text))
        return text
