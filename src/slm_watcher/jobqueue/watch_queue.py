"""
WatchQueue: in-process job queue and periodic scheduler for watcher jobs.

Every tick invokes each registered job once. Jobs that return DONE are
dropped; jobs that return RETRY stay for the next tick. A runner that
raises is treated as DONE with UNEXPECTED_ERROR. The queue knows
nothing about watcher logic beyond the RETRY/DONE signal and adds no retry
or backoff of its own.

Thread Safety:
    Single event loop. Jobs enqueued while a tick is running are picked up
    on the next tick.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from slm_watcher.broker.models import WatcherJobInput
from slm_watcher.watcher.outcome import OutcomeReason, WatchOutcome

log = logging.getLogger("slm_watcher")

JobRunner = Callable[[WatcherJobInput], Awaitable[WatchOutcome]]


class QueueFullError(Exception):
    """Raised when the queue already holds ``max_jobs`` jobs."""
    pass


@dataclass
class WatchJob:
    job_id: int
    input: WatcherJobInput
    attempts: int = 0
    last_outcome: Optional[WatchOutcome] = None


@dataclass
class WatchQueueConfig:
    poll_interval_sec: float = 5.0
    max_jobs: int = 500
    log_event_callback: Optional[Callable[..., None]] = None


@dataclass
class TickResult:
    ran: List[Tuple[WatchJob, WatchOutcome]] = field(default_factory=list)

    @property
    def done(self) -> List[WatchJob]:
        return [job for job, outcome in self.ran if outcome.is_done]

    @property
    def retried(self) -> List[WatchJob]:
        return [job for job, outcome in self.ran if outcome.is_retry]


class WatchQueue:
    """
    Usage:
        queue = WatchQueue(config=WatchQueueConfig(poll_interval_sec=5))
        watcher = SlmWatcher(broker, queue)
        queue.set_runner(watcher)
        queue.add_job(WatcherJobInput("230101000000001", initial_job_data={"orderTag": "t"}))
        await queue.run(stop_event)
    """

    def __init__(
        self,
        runner: Optional[JobRunner] = None,
        config: Optional[WatchQueueConfig] = None,
    ) -> None:
        self._runner = runner
        self.config = config or WatchQueueConfig()
        self._jobs: Dict[int, WatchJob] = {}
        self._ids = itertools.count(1)
        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        level = logging.ERROR if event.endswith("_error") else logging.INFO
        log.log(level, json.dumps({"event": event, **kwargs}, default=str))

    def set_runner(self, runner: JobRunner) -> None:
        self._runner = runner

    def __len__(self) -> int:
        return len(self._jobs)

    @property
    def jobs(self) -> List[WatchJob]:
        return list(self._jobs.values())

    def add_job(self, job_input: WatcherJobInput) -> WatchJob:
        if len(self._jobs) >= self.config.max_jobs:
            raise QueueFullError(f"Watch queue full ({self.config.max_jobs} jobs)")
        job = WatchJob(job_id=next(self._ids), input=job_input)
        self._jobs[job.job_id] = job
        self._log_event(
            "watch_job_added",
            job_id=job.job_id,
            order_id=job_input.watched_order_id,
            order_tag=job_input.order_tag,
        )
        return job

    async def enqueue(self, initial_job_data: Dict[str, Any], successor_payload: Dict[str, Any]) -> WatchJob:
        """Register a successor job for the order carried in ``successor_payload``."""
        job_input = WatcherJobInput.from_queue_payload(initial_job_data, successor_payload)
        return self.add_job(job_input)

    async def tick(self) -> TickResult:
        """Invoke every registered job once. A runner exception ends that job only."""
        if self._runner is None:
            raise RuntimeError("WatchQueue has no runner")

        batch = list(self._jobs.values())
        if not batch:
            return TickResult()

        results = await asyncio.gather(
            *(self._run_job(job) for job in batch),
            return_exceptions=True,
        )

        result = TickResult()
        for job, outcome in zip(batch, results):
            if isinstance(outcome, BaseException):
                self._log_event(
                    "watch_job_error",
                    job_id=job.job_id,
                    order_id=job.input.watched_order_id,
                    error=str(outcome),
                    error_class=type(outcome).__name__,
                )
                # Never retried: the runner may have placed an order before raising
                outcome = WatchOutcome.failed(OutcomeReason.UNEXPECTED_ERROR, str(outcome))
            result.ran.append((job, outcome))
            job.attempts += 1
            job.last_outcome = outcome
            if outcome.is_done:
                self._jobs.pop(job.job_id, None)
                self._log_event(
                    "watch_job_finished",
                    job_id=job.job_id,
                    order_id=job.input.watched_order_id,
                    attempts=job.attempts,
                    reason=outcome.reason.name,
                )
        return result

    async def _run_job(self, job: WatchJob) -> WatchOutcome:
        return await self._runner(job.input)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Tick every ``poll_interval_sec`` until ``stop_event`` is set."""
        self._log_event("watch_queue_started", jobs=len(self._jobs))
        while not stop_event.is_set():
            try:
                await self.tick()
            except Exception as exc:
                self._log_event("watch_tick_error", error=str(exc), error_class=type(exc).__name__)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.config.poll_interval_sec)
            except asyncio.TimeoutError:
                pass
        self._log_event("watch_queue_stopped", jobs=len(self._jobs))
