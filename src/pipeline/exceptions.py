"""Exceptions raised by the variant pipeline.

All of these are scoped to a single target: the orchestrator catches them per
branch and records the failure, except for an up-front missing credential,
which stops the run before any target is processed.
"""


class PipelineError(Exception):
    """Base exception for all pipeline errors."""
    pass


class FetchError(PipelineError):
    """Raised when a reference structure cannot be retrieved."""
    pass


class AuthenticationError(PipelineError):
    """Raised when no valid API credential is configured or it is rejected."""
    pass


class GenerationError(PipelineError):
    """Raised when the variant generation call fails or returns malformed data."""
    pass


class ParseError(PipelineError):
    """Raised when structure text cannot be parsed.

    A requested chain that is simply absent from the structure is not an
    error; it is omitted from the extracted sequences.
    """
    pass
