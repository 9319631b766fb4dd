"""Generation backends: run one AiRequest as an asyncio task.

The controller talks to a GenerationBackend. The backend starts the work and
hands back a GenerationHandle; the controller can then await the handle or
cancel it through the shared CancellationToken.
"""

import asyncio
import os
from string import Template
from typing import Callable, Optional, Protocol

import httpx

from gpspec_outline import Document, Fragment

from specprompt.models.request import AiRequest, AiResponse
from specprompt.services.llm_client import LLMClient
from specprompt.utils.logging import get_logger


logger = get_logger(__name__)

ChunkCallback = Callable[[str], None]


class CancellationToken:
    """Cooperative cancellation flag checked by backends between chunks."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class GenerationHandle:
    """
    Running generation: an asyncio task producing an AiResponse.

    Example:
        >>> handle = backend.generate(request, token, print)
        >>> response = await handle.wait()
    """

    def __init__(self, request_id: str, task: "asyncio.Task[AiResponse]", token: CancellationToken):
        self.request_id = request_id
        self.task = task
        self.token = token

    def done(self) -> bool:
        return self.task.done()

    async def wait(self) -> AiResponse:
        """
        Wait for the task to finish.

        Returns:
            The backend's response; a cancelled response if the task was
            cancelled; an error response if the task raised
        """
        await asyncio.wait({self.task})
        return self.result()

    async def cancel(self, timeout: float) -> bool:
        """
        Signal cancellation and wait (bounded) for the task to tear down.

        Args:
            timeout: Maximum seconds to wait

        Returns:
            True if the task finished within the timeout
        """
        self.token.cancel()
        self.task.cancel()
        done, _ = await asyncio.wait({self.task}, timeout=timeout)
        if not done:
            logger.warning("generation_teardown_timeout", request_id=self.request_id, timeout=timeout)
        return bool(done)

    def result(self) -> AiResponse:
        """Response of a finished task."""
        if self.task.cancelled():
            return AiResponse(request_id=self.request_id, cancelled=True)
        error = self.task.exception()
        if error is not None:
            logger.error(
                "generation_failed",
                request_id=self.request_id,
                error=str(error),
                error_type=type(error).__name__,
            )
            return AiResponse(request_id=self.request_id, error=str(error))
        return self.task.result()


class GenerationBackend(Protocol):
    """Starts generation for a request and returns a handle to it."""

    def generate(
        self,
        request: AiRequest,
        token: CancellationToken,
        on_chunk: ChunkCallback,
    ) -> GenerationHandle:
        ...


def render_prompt(request: AiRequest, document: Document) -> str:
    """
    Substitute request data into the template text.

    Placeholders: $title, $text (fragment span text), $file (document
    path), $references (one referenced file per line) and $label. Unknown
    placeholders are left as they are.

    Args:
        request: Request being rendered
        document: Current document owning the request's fragment

    Returns:
        Prompt text
    """
    fragment = request.fragment
    base_dir = os.path.dirname(document.filename)
    references = "\n".join(
        os.path.relpath(ref, base_dir) for ref in fragment.references
    )
    return Template(request.template.text).safe_substitute(
        title=fragment.title,
        text=document.span_text(fragment),
        file=document.filename,
        references=references,
        label=request.label,
    )


class LLMGenerationBackend:
    """
    Generation backend streaming from an LLM chat API.

    Example:
        >>> backend = LLMGenerationBackend(LLMClient(config.llm), store.document_for)
    """

    def __init__(
        self,
        llm_client: LLMClient,
        document_for: Callable[[Fragment], Document],
        system_prompt: Optional[str] = None,
        temperature: float = 0.2,
        max_retries: int = 1,
    ):
        """
        Initialize backend.

        Args:
            llm_client: Streaming client
            document_for: Returns the current document owning a fragment
            system_prompt: Optional system prompt sent with every request
            temperature: Sampling temperature
            max_retries: Automatic retries on transient connection errors
        """
        self.llm_client = llm_client
        self.document_for = document_for
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_retries = max_retries

    def generate(
        self,
        request: AiRequest,
        token: CancellationToken,
        on_chunk: ChunkCallback,
    ) -> GenerationHandle:
        task = asyncio.create_task(
            self._run(request, token, on_chunk),
            name=f"generate-{request.request_id}",
        )
        return GenerationHandle(request.request_id, task, token)

    async def _run(
        self,
        request: AiRequest,
        token: CancellationToken,
        on_chunk: ChunkCallback,
    ) -> AiResponse:
        prompt = render_prompt(request, self.document_for(request.fragment))
        parts: list[str] = []

        try:
            async for delta in self.llm_client.stream_text(
                prompt,
                system_prompt=self.system_prompt,
                temperature=self.temperature,
                max_retries=self.max_retries,
                request_id=request.request_id,
            ):
                if token.is_cancelled:
                    break
                parts.append(delta)
                on_chunk(delta)
        except httpx.HTTPError as e:
            return AiResponse(request_id=request.request_id, text="".join(parts), error=str(e))

        return AiResponse(
            request_id=request.request_id,
            text="".join(parts),
            cancelled=token.is_cancelled,
        )
