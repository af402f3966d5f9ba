"""Retry and fallback framework.

Two primitives, both built on tenacity:

    text = await call_with_retry(gateway, prompt, options, policy)
    outline = await run_validated_step("outline", make_outline, validate_outline, metadata, policy)

call_with_retry bounds every gateway call with a timeout and retries transport
failures. run_validated_step wraps a whole generate+parse+validate step,
records every attempt in RetryMetadata and raises StepExhausted when the
attempts run out, so the caller can switch to fallback synthesis.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings
from .errors import BookForgeError, FatalError, GenerationError, GenerationTimeout, StepExhausted
from .llm import GenerationGateway, GenerationOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass
class StepAttempt:
    """One attempt of a named step."""
    step_name: str
    attempt: int
    success: bool
    error: Optional[str] = None
    duration: float = 0.0

    @property
    def retry_count(self) -> int:
        return self.attempt - 1

    def to_dict(self) -> dict:
        return {
            "step_name": self.step_name,
            "retry_count": self.retry_count,
            "success": self.success,
            "error": self.error,
            "duration": round(self.duration, 3),
        }


@dataclass
class RetryMetadata:
    """Every step attempt made during planning, plus the fallback outcome."""
    attempts: list[StepAttempt] = field(default_factory=list)
    fallback_used: bool = False
    fallback_reason: Optional[str] = None

    def record(self, step_name: str, attempt: int, success: bool, error: Optional[str] = None, duration: float = 0.0) -> None:
        self.attempts.append(StepAttempt(step_name, attempt, success, error, duration))

    def attempts_for(self, step_name: str) -> list[StepAttempt]:
        return [a for a in self.attempts if a.step_name == step_name]

    def failed_attempts(self, step_name: str) -> list[StepAttempt]:
        return [a for a in self.attempts_for(step_name) if not a.success]

    @property
    def total_retries(self) -> int:
        return sum(1 for a in self.attempts if a.attempt > 1)

    @property
    def total_duration(self) -> float:
        return sum(a.duration for a in self.attempts)

    def mark_fallback(self, reason: str) -> None:
        self.fallback_used = True
        self.fallback_reason = reason

    def to_dict(self) -> dict:
        return {
            "attempts": [a.to_dict() for a in self.attempts],
            "total_retries": self.total_retries,
            "total_duration": round(self.total_duration, 3),
            "fallback_used": self.fallback_used,
            "fallback_reason": self.fallback_reason,
        }


@dataclass
class RetryPolicy:
    """How many times to try, how long to wait between tries, and how long one try may take."""
    attempts: int = 3
    backoff_base: float = 1.0
    timeout: Optional[float] = 120.0
    sleep: SleepFunc = asyncio.sleep

    @classmethod
    def for_steps(cls, settings: Settings, sleep: SleepFunc = asyncio.sleep) -> "RetryPolicy":
        return cls(settings.max_retries, settings.backoff_base, settings.request_timeout, sleep)

    @classmethod
    def for_gateway(cls, settings: Settings, sleep: SleepFunc = asyncio.sleep) -> "RetryPolicy":
        return cls(settings.gateway_attempts, settings.backoff_base, settings.request_timeout, sleep)

    def wait(self) -> wait_exponential:
        # 1s, 2s, 4s ... for the default base
        return wait_exponential(multiplier=self.backoff_base, exp_base=2, min=0)


async def _generate_once(
    gateway: GenerationGateway,
    prompt: str,
    options: Optional[GenerationOptions],
    timeout: Optional[float],
) -> str:
    try:
        if timeout is None:
            response = await gateway.generate(prompt, options)
        else:
            response = await asyncio.wait_for(gateway.generate(prompt, options), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise GenerationTimeout(f"Generation call exceeded {timeout}s") from e
    except BookForgeError:
        raise
    except Exception as e:
        raise GenerationError(f"Generation call failed: {e}") from e

    text = (response.text or "").strip()
    if not text:
        raise GenerationError("Generation call returned no text")
    return text


async def call_with_retry(
    gateway: GenerationGateway,
    prompt: str,
    options: Optional[GenerationOptions] = None,
    policy: Optional[RetryPolicy] = None,
) -> str:
    """Call the gateway, retrying transport failures with exponential backoff.

    Raises:
        GenerationError: every attempt failed (last failure is re-raised)
    """
    policy = policy or RetryPolicy()
    text = ""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(policy.attempts),
        wait=policy.wait(),
        retry=retry_if_exception_type(GenerationError),
        sleep=policy.sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            text = await _generate_once(gateway, prompt, options, policy.timeout)
    return text


async def run_validated_step(
    step_name: str,
    operation: Callable[[], Awaitable[T]],
    validate: Optional[Callable[[T], Any]],
    metadata: RetryMetadata,
    policy: RetryPolicy,
) -> T:
    """Run a generate+parse step, validate its result and retry on failure.

    Args:
        step_name: Name recorded in metadata
        operation: Coroutine function producing the step's artifact
        validate: Raises (typically SchemaValidationError) when the artifact is invalid
        metadata: Receives one StepAttempt per try
        policy: Attempt count and backoff

    Raises:
        StepExhausted: every attempt failed
        FatalError: propagated untouched, never retried
    """
    result: Any = None
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(policy.attempts),
            wait=policy.wait(),
            retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(FatalError),
            sleep=policy.sleep,
            reraise=True,
        ):
            with attempt:
                number = attempt.retry_state.attempt_number
                started = time.monotonic()
                try:
                    result = await operation()
                    if validate is not None:
                        validate(result)
                except Exception as e:
                    metadata.record(step_name, number, False, str(e) or type(e).__name__, time.monotonic() - started)
                    logger.warning("Step %s attempt %d/%d failed: %s", step_name, number, policy.attempts, e)
                    raise
                metadata.record(step_name, number, True, None, time.monotonic() - started)
    except FatalError:
        raise
    except Exception as e:
        raise StepExhausted(step_name, policy.attempts, e) from e

    logger.debug("Step %s succeeded", step_name)
    return result
