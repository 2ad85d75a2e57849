"""
Error types raised by the 1Password resource controllers.

All errors surface immediately to the caller. Nothing here retries or rolls
back; the reconciler decides what to do with a failed resource.
"""

from typing import List, Optional


class OperatorError(Exception):
    """Base class for all operator errors."""


class MalformedIdentifier(OperatorError, ValueError):
    """A composite resource id did not split into exactly two parts."""

    def __init__(self, resource_id: str, expected_format: str):
        self.resource_id = resource_id
        self.expected_format = expected_format
        super().__init__(
            f"Improperly formatted identifier '{resource_id}'. "
            f'The format "{expected_format}" is expected'
        )


class BackendError(OperatorError):
    """A command issued to the op CLI failed."""

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        stderr: str = "",
        returncode: Optional[int] = None,
    ):
        self.command = command or []
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(message)


class NotFoundError(BackendError):
    """The backend reported that the requested object does not exist."""


class ProtectedResource(OperatorError):
    """A destructive operation was refused because of a safety lock."""

    def __init__(self, kind: str, resource_id: str):
        self.kind = kind
        self.resource_id = resource_id
        super().__init__(
            f"{kind} '{resource_id}' removal disabled. "
            "Please delete manually or remove safety_lock."
        )


class SecondaryEffectError(OperatorError):
    """
    A primary effect succeeded but its follow-up step failed.

    The resource exists at the backend under ``resource_id``; ``cause`` is the
    error raised by the follow-up step.
    """

    def __init__(self, message: str, resource_id: str, cause: Exception):
        self.resource_id = resource_id
        self.cause = cause
        super().__init__(f"{message}: {cause}")
