"""Tagged error hierarchy.

Three families drive the retry framework:
- RetryableError: transport, parse and schema failures; retried with backoff
- FallbackTriggered: a step ran out of attempts; deterministic synthesis takes over
- FatalError: nothing left to try; surfaced to the caller
"""

from typing import Optional


class BookForgeError(Exception):
    """Base class for all pipeline errors."""


class RetryableError(BookForgeError):
    """A failure worth another attempt."""


class GenerationError(RetryableError):
    """The generation backend failed or returned nothing usable."""


class GenerationTimeout(GenerationError):
    """A generation call exceeded its timeout."""


class RateLimited(GenerationError):
    """The backend asked us to slow down (429/503)."""


class ParseError(RetryableError):
    """A response could not be parsed, even after cleanup."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class SchemaValidationError(RetryableError):
    """A parsed payload did not match its expected structure."""

    def __init__(self, message: str, problems: Optional[list[str]] = None):
        super().__init__(message)
        self.problems = problems or []


class FallbackTriggered(BookForgeError):
    """Primary generation gave up; a fallback artifact should be built."""


class StepExhausted(FallbackTriggered):
    """A validated step used every attempt without producing a valid result."""

    def __init__(self, step_name: str, attempts: int, last_error: Optional[BaseException] = None):
        self.step_name = step_name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Step '{step_name}' failed after {attempts} attempts: {last_error}")


class FatalError(BookForgeError):
    """Unrecoverable failure, reported with every error that led to it."""

    def __init__(self, message: str, original: Optional[BaseException] = None, fallback: Optional[BaseException] = None):
        details = [message]
        if original is not None:
            details.append(f"original error: {original}")
        if fallback is not None:
            details.append(f"fallback error: {fallback}")
        super().__init__("; ".join(details))
        self.original = original
        self.fallback = fallback


class RunCancelled(FatalError):
    """The run was abandoned by its caller."""
