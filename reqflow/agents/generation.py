"""
Client for the text-generation collaborator.

Two endpoints on the generation proxy:
  POST {base_url}/chat         -> {"content": [{"text": "..."}]}
  POST {base_url}/chat/stream  -> server-sent events, decoded by StreamDecoder

Whatever comes back is untrusted: JSON answers are cleaned, parsed and
checked against a schema before callers see them.
"""

import json
import logging
from typing import Any, Optional

import httpx

from reqflow.agents.stream import (
    PREVIEW_CHARS,
    GenerationError,
    ParseError,
    ProgressCallback,
    decode_stream,
    parse_json_text,
)
from reqflow.lib.config import GenerationConfig
from reqflow.lib.validate import ValidationError, validate

logger = logging.getLogger(__name__)


def _check_schema(data: Any, schema_name: Optional[str]) -> Any:
    if schema_name is None:
        return data
    try:
        validate(data, schema_name)
    except ValidationError as e:
        raise ParseError(f"Generated output failed validation: {e}", json.dumps(data)[:PREVIEW_CHARS]) from None
    return data


class GenerationClient:
    """Async client for prompt -> text and prompt -> streamed JSON calls."""

    def __init__(self, config: GenerationConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _body(self, prompt: str, max_tokens: Optional[int]) -> dict:
        return {
            "model": self.config.model,
            "max_tokens": max_tokens or self.config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

    async def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Send a prompt and return the full text answer.

        Raises:
            GenerationError: On transport failure, non-2xx status or an unexpected body
        """
        try:
            response = await self._client.post("/chat", json=self._body(prompt, max_tokens))
        except httpx.HTTPError as e:
            raise GenerationError(f"Generation request failed: {e}") from e

        if response.is_error:
            raise GenerationError(f"Generation API error: {response.status_code}")

        try:
            return response.json()["content"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationError(f"Unexpected generation response shape: {e}") from None

    async def complete_json(
        self,
        prompt: str,
        schema_name: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Any:
        """Send a prompt expecting a JSON answer.

        Raises:
            GenerationError: On transport failure
            ParseError: If the answer isn't JSON or doesn't match schema_name
        """
        text = await self.complete(prompt, max_tokens)
        return _check_schema(parse_json_text(text), schema_name)

    async def stream_json(
        self,
        prompt: str,
        schema_name: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        max_tokens: Optional[int] = None,
    ) -> Any:
        """Stream a JSON answer, reporting the growing text via on_progress.

        Not retried here: each attempt is billed by the provider.

        Raises:
            GenerationError: On transport failure or an error event in the stream
            ParseError: If nothing arrived, or the text isn't JSON / doesn't match schema_name
        """
        try:
            async with self._client.stream("POST", "/chat/stream", json=self._body(prompt, max_tokens)) as response:
                if response.is_error:
                    await response.aread()
                    raise GenerationError(f"Generation API error: {response.status_code}")
                data = await decode_stream(
                    response.aiter_lines(),
                    on_progress=on_progress,
                    min_length=self.config.min_content_length,
                )
        except httpx.HTTPError as e:
            raise GenerationError(f"Generation stream failed: {e}") from e

        return _check_schema(data, schema_name)
