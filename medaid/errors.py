"""Failure taxonomy for the extraction / assessment / chat / facility pipeline.

None of these are fatal. The profile store and conversation log catch them,
leave prior state untouched and report a rejected operation to the caller.
"""

from enum import Enum


class ErrorKind(str, Enum):
    PARSE_ERROR = "ParseError"
    TRANSPORT_FAILURE = "TransportFailure"
    VALIDATION_ERROR = "ValidationError"


class PipelineError(Exception):
    kind: ErrorKind

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind.value)
        self.detail = message or self.kind.value


class ParseError(PipelineError):
    """Service response did not conform to the expected schema."""

    kind = ErrorKind.PARSE_ERROR


class TransportFailure(PipelineError):
    """The capability call itself failed (network, provider, storage)."""

    kind = ErrorKind.TRANSPORT_FAILURE


class ValidationError(PipelineError):
    """A required field is absent from an otherwise parseable response."""

    kind = ErrorKind.VALIDATION_ERROR
