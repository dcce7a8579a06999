"""Bounded worker pool for upload tasks."""
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar
import asyncio
import logging
import os

from ..errors import describe_exception

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POOL_WIDTH = 5
POOL_WIDTH_ENV = "SKU_UPLOADER_MAX_PARALLEL"


def get_pool_width(override: Optional[int] = None) -> int:
    """Explicit override, else SKU_UPLOADER_MAX_PARALLEL, else 5."""
    if override is not None:
        return override
    env_value = os.getenv(POOL_WIDTH_ENV)
    if env_value:
        try:
            return int(env_value)
        except ValueError:
            logger.warning(f"Ignoring non-integer {POOL_WIDTH_ENV}={env_value!r}")
    return DEFAULT_POOL_WIDTH


@dataclass(frozen=True)
class TaskOutcome(Generic[T]):
    """Explicit success/failure value produced by a pool task."""
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "TaskOutcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "TaskOutcome[T]":
        return cls(error=error)


class WorkerPool:
    """
    Runs awaitables with at most `width` of them in flight.

    Exceptions raised by a task become TaskOutcome.failure values, so one
    task can never unwind its siblings. Cancellation still propagates.
    """

    def __init__(self, width: int = DEFAULT_POOL_WIDTH):
        if width < 1:
            raise ValueError(f"Pool width must be at least 1, got {width}")
        self._width = width
        self._semaphore = asyncio.Semaphore(width)
        self._in_flight = 0
        self._peak_in_flight = 0
        self._completed = 0

    @property
    def width(self) -> int:
        return self._width

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        return self._peak_in_flight

    @property
    def completed(self) -> int:
        return self._completed

    async def submit(self, task: Callable[[], Awaitable[T]], label: str = "") -> TaskOutcome[T]:
        async with self._semaphore:
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            logger.debug(f"Pool slot taken ({self._in_flight}/{self._width}): {label}")
            try:
                value = await task()
            except Exception as exc:
                return TaskOutcome.failure(describe_exception(exc))
            finally:
                self._in_flight -= 1
                self._completed += 1
        return TaskOutcome.success(value)
