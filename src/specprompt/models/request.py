"""Request lifecycle models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from gpspec_outline import Fragment

from specprompt.models.template import PromptTemplate
from specprompt.utils.ids import generate_request_id


class RequestState(str, Enum):
    """States of the request controller."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class AiRequest:
    """The current or most recent generation request.

    Replaced wholesale by every start; never mutated.

    Attributes:
        fragment: Resolved root fragment the request targets
        template: Template being applied
        label: Human-readable label (usually the template title)
        request_id: Unique ID for logging and late-output filtering
        created_at: Creation timestamp (UTC)
    """

    fragment: Fragment
    template: PromptTemplate
    label: str
    request_id: str = field(default_factory=generate_request_id)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class AiResponse:
    """Outcome of a generation request.

    Attributes:
        request_id: ID of the AiRequest this answers
        text: Output accumulated before the request finished
        error: Backend error message, reported verbatim to the user
        cancelled: True if the request was cancelled before finishing
    """

    request_id: str
    text: str = ""
    error: Optional[str] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        """True if the request finished without error or cancellation."""
        return self.error is None and not self.cancelled
