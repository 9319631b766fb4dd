"""Single-slot request lifecycle: start, cancel, resume."""

from typing import Callable, Optional

from gpspec_outline import Fragment

from specprompt.models.request import AiRequest, AiResponse, RequestState
from specprompt.models.template import PromptTemplate
from specprompt.services.exceptions import NoPreviousRequestError, RequestInProgressError
from specprompt.services.fragment_store import FragmentStore
from specprompt.services.generation import CancellationToken, GenerationBackend, GenerationHandle
from specprompt.utils.logging import get_logger


logger = get_logger(__name__)

OutputCallback = Callable[[AiRequest, str], None]


class RequestController:
    """
    Owns at most one in-flight generation request.

    State machine:
        IDLE --start--> RUNNING --finish--> COMPLETED
        RUNNING --cancel--> IDLE
        COMPLETED --start--> RUNNING

    start() is rejected while RUNNING; callers cancel first. The record of
    the most recent request survives completion and cancellation so it can
    be resumed.

    Example:
        >>> controller = RequestController(store, backend)
        >>> await controller.start(fragment, template, "Review")
        >>> response = await controller.wait()
    """

    def __init__(
        self,
        fragments: FragmentStore,
        backend: GenerationBackend,
        cancel_timeout: float = 5.0,
        on_output: Optional[OutputCallback] = None,
    ):
        """
        Initialize controller.

        Args:
            fragments: Store used to re-resolve fragments on start
            backend: Generation backend
            cancel_timeout: Seconds to wait for a cancelled request to tear down
            on_output: Receives streamed chunks of the current request
        """
        self.fragments = fragments
        self.backend = backend
        self.cancel_timeout = cancel_timeout
        self.on_output = on_output

        self._state = RequestState.IDLE
        self._request: Optional[AiRequest] = None
        self._response: Optional[AiResponse] = None
        self._handle: Optional[GenerationHandle] = None
        self._output: list[str] = []

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def last_request(self) -> Optional[AiRequest]:
        """The current or most recent request (None before the first start)."""
        return self._request

    @property
    def response(self) -> Optional[AiResponse]:
        """Response of the most recent request once it finished or was cancelled."""
        return self._response

    async def start(
        self,
        fragment: Fragment,
        template: PromptTemplate,
        label: Optional[str] = None,
    ) -> AiRequest:
        """
        Start a new request.

        Args:
            fragment: Target fragment (re-resolved against the current project)
            template: Template to apply
            label: Display label (defaults to the template title)

        Returns:
            The new AiRequest

        Raises:
            RequestInProgressError: If a request is RUNNING
            StaleFragmentError: If the fragment no longer exists
        """
        if self._state == RequestState.RUNNING:
            raise RequestInProgressError(self._request.request_id)

        fragment = self.fragments.refresh(fragment)

        request = AiRequest(fragment=fragment, template=template, label=label or template.title)
        token = CancellationToken()

        self._request = request
        self._response = None
        self._output = []

        handle = self.backend.generate(
            request,
            token,
            lambda chunk: self._on_chunk(request, token, chunk),
        )
        self._handle = handle
        self._state = RequestState.RUNNING
        handle.task.add_done_callback(lambda _task: self._finish(request, handle))

        logger.info(
            "request_started",
            request_id=request.request_id,
            template=template.id,
            fragment=fragment.full_id,
        )
        return request

    async def cancel(self) -> None:
        """
        Cancel the running request (no-op unless RUNNING).

        Waits at most cancel_timeout seconds for the backend to stop. A
        request whose task already finished completes instead.
        """
        if self._state != RequestState.RUNNING:
            return

        request = self._request
        handle = self._handle
        if handle.done():
            # Done callback still queued on the loop
            self._finish(request, handle)
            return

        finished = await handle.cancel(self.cancel_timeout)

        # A new request may not start while RUNNING, so request is still current
        self._response = AiResponse(
            request_id=request.request_id,
            text="".join(self._output),
            cancelled=True,
        )
        self._state = RequestState.IDLE
        logger.info("request_cancelled", request_id=request.request_id, torn_down=finished)

    def resume_previous(self) -> tuple[Fragment, PromptTemplate]:
        """
        Get the target and template of the most recent request.

        Raises:
            NoPreviousRequestError: If no request was ever started
        """
        if self._request is None:
            raise NoPreviousRequestError()
        return self._request.fragment, self._request.template

    async def wait(self) -> Optional[AiResponse]:
        """
        Wait for the running request to finish.

        Returns:
            The response of the most recent request (None if none has finished)
        """
        if self._state == RequestState.RUNNING:
            request = self._request
            handle = self._handle
            await handle.wait()
            self._finish(request, handle)
        return self._response

    def _finish(self, request: AiRequest, handle: GenerationHandle) -> None:
        if request is not self._request or self._state != RequestState.RUNNING:
            return
        if handle.token.is_cancelled:
            return

        response = handle.result()
        self._response = response
        self._state = RequestState.COMPLETED

        if response.error:
            logger.error("request_failed", request_id=request.request_id, error=response.error)
        else:
            logger.info(
                "request_completed",
                request_id=request.request_id,
                output_length=len(response.text),
            )

    def _on_chunk(self, request: AiRequest, token: CancellationToken, chunk: str) -> None:
        if request is not self._request or token.is_cancelled:
            logger.warning("late_chunk_discarded", request_id=request.request_id)
            return
        self._output.append(chunk)
        logger.debug("request_output", request_id=request.request_id, chunk=chunk)
        if self.on_output:
            self.on_output(request, chunk)
