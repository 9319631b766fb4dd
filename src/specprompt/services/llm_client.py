"""Streaming chat-completion client used by the generation backend.

Two wire formats are spoken: OpenAI-compatible ``/chat/completions`` with
server-sent events, and Ollama's native ``/api/chat`` NDJSON stream. Which one
is used is decided once per client by probing the server.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional

import httpx

from specprompt.models.config import LLMConfig
from specprompt.utils.logging import get_logger


logger = get_logger(__name__)

# Errors worth another attempt, as long as nothing was streamed yet
TRANSIENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout)


def _extract_content_from_openai_chunk(data: dict[str, Any]) -> Optional[str]:
    """Text delta of an OpenAI-compatible chunk (``choices[0].delta.content``)."""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    return delta.get("content")


def _extract_content_from_ollama_chunk(data: dict[str, Any]) -> Optional[str]:
    """Text delta of an Ollama ``/api/chat`` chunk (``message.content``)."""
    message = data.get("message")
    if not isinstance(message, dict):
        return None
    return message.get("content")


def _decode_line(line: str, request_id: str) -> Optional[dict[str, Any]]:
    """Turn one stream line into a JSON object; None for keep-alives, [DONE] and junk."""
    text = line.strip()
    if not text:
        return None
    if text.startswith("data:"):
        text = text[5:].strip()
        if text == "[DONE]":
            logger.debug("llm_response_sse_done", request_id=request_id)
            return None

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("llm_malformed_json", request_id=request_id, line=line, error=str(e))
        return None
    return data if isinstance(data, dict) else None


@dataclass(frozen=True)
class ChatRoute:
    """Where and how to send one chat request."""

    provider: str
    url: str
    payload: dict[str, Any]
    extract: Callable[[dict[str, Any]], Optional[str]]


class LLMClient:
    """
    Chat-completion client that yields the answer as it streams in.

    Example:
        >>> client = LLMClient(config.llm)
        >>> async for delta in client.stream_text("Review this spec"):
        ...     print(delta, end="")
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        # Long read timeout: local models can pause between tokens
        self.timeout = httpx.Timeout(10.0, read=60.0)
        self._is_ollama: Optional[bool] = None

    def _server_root(self) -> str:
        root = str(self.config.endpoint).rstrip("/")
        return root[:-3] if root.endswith("/v1") else root

    async def _detect_ollama(self) -> bool:
        """Probe ``/api/version`` once; anything but a 200 means OpenAI-compatible."""
        if self._is_ollama is None:
            probe = f"{self._server_root()}/api/version"
            try:
                async with httpx.AsyncClient(timeout=httpx.Timeout(5.0)) as client:
                    response = await client.get(probe)
                self._is_ollama = response.status_code == 200
            except httpx.HTTPError as e:
                logger.debug("llm_provider_probe_failed", url=probe, error=str(e))
                self._is_ollama = False
            logger.info("llm_provider_detected", provider="ollama" if self._is_ollama else "openai")
        return self._is_ollama

    def _route(self, is_ollama: bool, messages: list[dict[str, str]], temperature: float) -> ChatRoute:
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "stream": True,
        }
        if is_ollama:
            payload["options"] = {"temperature": temperature, "num_ctx": self.config.num_ctx}
            return ChatRoute("ollama", f"{self._server_root()}/api/chat", payload,
                             _extract_content_from_ollama_chunk)

        payload["temperature"] = temperature
        url = str(self.config.endpoint).rstrip("/") + "/chat/completions"
        return ChatRoute("openai", url, payload, _extract_content_from_openai_chunk)

    async def stream_text(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.2,
        max_retries: int = 1,
        retry_delay: float = 2.0,
        request_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Send a prompt and yield the answer's text deltas in arrival order.

        A connection failure or timeout is retried (after ``retry_delay``
        seconds) only while nothing has been yielded, so a consumer never
        sees the same text twice. HTTP error statuses are not retried.

        Args:
            prompt: Rendered template text (user message)
            system_prompt: Optional system message
            temperature: Sampling temperature
            max_retries: Extra attempts after a transient failure
            retry_delay: Seconds to wait between attempts
            request_id: Request identifier for log correlation

        Raises:
            httpx.HTTPError: When the request fails for good
        """
        request_id = request_id or "unknown"
        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})
        route = self._route(await self._detect_ollama(), messages, temperature)

        logger.info(
            "llm_request_started",
            request_id=request_id,
            model=self.config.model,
            provider=route.provider,
            url=route.url,
            prompt_length=len(prompt),
        )
        logger.debug("llm_request_payload", request_id=request_id, payload=route.payload)

        yielded = 0
        for attempt in range(max_retries + 1):
            try:
                async for content in self._stream_once(route, request_id):
                    yielded += 1
                    yield content
            except TRANSIENT_ERRORS as e:
                if yielded or attempt >= max_retries:
                    logger.error(
                        "llm_request_failed",
                        request_id=request_id,
                        attempts=attempt + 1,
                        streamed_chunks=yielded,
                        error=str(e),
                    )
                    raise
                logger.warning(
                    "llm_request_retry",
                    request_id=request_id,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    retry_delay=retry_delay,
                    error=str(e),
                )
                await asyncio.sleep(retry_delay)
                continue
            except httpx.HTTPStatusError as e:
                logger.error(
                    "llm_http_error",
                    request_id=request_id,
                    status_code=e.response.status_code,
                    error=str(e),
                )
                raise

            logger.info("llm_request_completed", request_id=request_id, chunk_count=yielded)
            return

    async def _stream_once(self, route: ChatRoute, request_id: str) -> AsyncIterator[str]:
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            async with client.stream("POST", route.url, json=route.payload, headers=headers) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    data = _decode_line(line, request_id)
                    if data is None:
                        continue
                    content = route.extract(data)
                    if content:
                        logger.debug("llm_response_chunk", request_id=request_id, content=content)
                        yield content
