"""Custom exceptions for specprompt services."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from specprompt.models.pick import OptionItem


class FileModifiedError(Exception):
    """Raised when a file is modified during an atomic write operation.

    This exception indicates that the file changed between the initial
    read and the final write, which could lead to data loss if the write
    were to proceed.

    Attributes:
        path: Path to the file that was modified
        message: Human-readable error message
    """

    def __init__(self, path: str, message: str = "File was modified during write operation"):
        self.path = path
        self.message = message
        super().__init__(f"{message}: {path}")


class FragmentNotFoundError(Exception):
    """Raised when an identifier resolves to no fragment.

    Attributes:
        identifier: The identifier that failed to resolve (None for "previous")
    """

    def __init__(self, identifier: object = None, message: str = "Fragment not found"):
        self.identifier = identifier
        self.message = message
        super().__init__(f"{message}: {identifier}" if identifier is not None else message)


class StaleFragmentError(FragmentNotFoundError):
    """Raised when a captured fragment ID is absent after a re-parse."""

    def __init__(self, full_id: str):
        super().__init__(full_id, "Fragment no longer exists (document was re-parsed)")
        self.full_id = full_id


class NoPreviousRequestError(FragmentNotFoundError):
    """Raised when "previous request" is asked for and none was ever started."""

    def __init__(self):
        super().__init__(None, "No previous request")


class AmbiguousFragmentError(Exception):
    """Raised when several documents reference the same file.

    The caller must present ``options`` and resolve the user's choice; an
    option with value None requests a new specification document.

    Attributes:
        path: Referenced file being resolved
        options: Candidate documents plus the "create new" option
    """

    def __init__(self, path: str, options: list["OptionItem"]):
        self.path = path
        self.options = options
        super().__init__(f"{len(options) - 1} specification documents reference {path}")


class PreconditionError(Exception):
    """Raised when an operation is attempted in a state that forbids it."""


class RequestInProgressError(PreconditionError):
    """Raised when a request is started while another one is running."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request {request_id} is still running; cancel it first")

