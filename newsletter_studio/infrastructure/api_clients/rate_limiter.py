"""Rate-limited dispatch queue with pluggable backoff for API clients."""

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from newsletter_studio.infrastructure.logging import get_logger

logger = get_logger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class BackoffPolicy(ABC):
    """Decides how long to pause after each dispatched task."""

    @abstractmethod
    def delay_after(self, success: bool, consecutive_failures: int) -> float:
        """Seconds to wait after a task finished.

        Args:
            success: Whether the task succeeded
            consecutive_failures: Failures in a row including this one
        """


@dataclass
class FixedDelayBackoff(BackoffPolicy):
    """Short pause after success, longer pause after failure."""

    success_delay: float = 0.2
    failure_delay: float = 1.0

    def delay_after(self, success: bool, consecutive_failures: int) -> float:
        return self.success_delay if success else self.failure_delay


@dataclass
class ExponentialBackoff(BackoffPolicy):
    """Doubles the failure pause for every consecutive failure."""

    success_delay: float = 0.2
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: bool = True

    def delay_after(self, success: bool, consecutive_failures: int) -> float:
        if success:
            return self.success_delay
        wait_time = min(self.max_delay, self.base_delay * (2 ** max(0, consecutive_failures - 1)))
        if self.jitter:
            wait_time += random.uniform(0, wait_time * 0.1)
        return wait_time


@dataclass
class DispatchOutcome:
    """Result of one queued task."""

    key: str
    success: bool
    result: Any = None
    error: Optional[BaseException] = None
    delay: float = 0.0

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None


@dataclass
class _Task:
    index: int
    key: str
    func: Callable[..., Awaitable[Any]]
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)


class DispatchQueue:
    """Runs queued coroutine tasks with bounded concurrency and backoff.

    With ``concurrency=1`` tasks run strictly in submission order and task
    N+1 never starts before task N's outcome and pause are complete. Task
    failures never abort the queue; each one is recorded in its outcome.
    """

    def __init__(
        self,
        backoff: Optional[BackoffPolicy] = None,
        concurrency: int = 1,
        sleep: Optional[Sleeper] = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.backoff = backoff or FixedDelayBackoff()
        self.concurrency = concurrency
        self._sleep = sleep or asyncio.sleep
        self._queue: asyncio.Queue = asyncio.Queue()
        self._size = 0
        self._consecutive_failures = 0

    def __len__(self) -> int:
        return self._queue.qsize()

    def add_task(self, key: str, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> None:
        """Queue a task; ``key`` identifies it in the outcomes (e.g. a recipient)."""
        self._queue.put_nowait(_Task(self._size, key, func, args, kwargs))
        self._size += 1

    async def _run_task(self, task: _Task) -> DispatchOutcome:
        try:
            result = await task.func(*task.args, **task.kwargs)
        except Exception as e:
            self._consecutive_failures += 1
            outcome = DispatchOutcome(key=task.key, success=False, error=e)
            logger.warning("Dispatch task failed", key=task.key, error=str(e))
        else:
            self._consecutive_failures = 0
            outcome = DispatchOutcome(key=task.key, success=True, result=result)

        outcome.delay = self.backoff.delay_after(outcome.success, self._consecutive_failures)
        if outcome.delay > 0:
            await self._sleep(outcome.delay)
        return outcome

    async def _worker(self, worker_id: int, outcomes: List[Optional[DispatchOutcome]]) -> None:
        logger.debug("Dispatch worker started", worker_id=worker_id)
        while True:
            try:
                task = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            try:
                outcomes[task.index] = await self._run_task(task)
            finally:
                self._queue.task_done()
        logger.debug("Dispatch worker finished", worker_id=worker_id)

    async def process_all(self) -> List[DispatchOutcome]:
        """Process every queued task and return outcomes in submission order."""
        if self._queue.empty():
            return []

        outcomes: List[Optional[DispatchOutcome]] = [None] * self._size
        workers = [
            asyncio.create_task(self._worker(i, outcomes))
            for i in range(min(self.concurrency, self._queue.qsize()))
        ]
        await asyncio.gather(*workers)

        self._size = 0
        return [outcome for outcome in outcomes if outcome is not None]
