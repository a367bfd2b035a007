import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()

Job = Callable[[], Awaitable[None]]


@dataclass
class _ScheduledJob:
    task: asyncio.Task
    started: bool = False


class BackgroundScheduler:
    """Debounced delayed jobs keyed by job id.

    Scheduling an id that is still waiting cancels the pending run and replaces
    it. A job that has already started is left to finish. Job failures are
    logged and swallowed, and the id is released whatever the outcome so it
    can be scheduled again.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, _ScheduledJob] = {}
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, job_id: str, job: Job, delay_ms: float = 0) -> None:
        existing = self._jobs.get(job_id)
        if existing is not None and not existing.started:
            existing.task.cancel()
            logger.debug("Background job replaced", job_id=job_id)

        task = asyncio.get_running_loop().create_task(
            self._run(job_id, job, delay_ms),
            name=f"background:{job_id}",
        )
        self._jobs[job_id] = _ScheduledJob(task=task)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, job_id: str, job: Job, delay_ms: float) -> None:
        try:
            if delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)
            current = self._current(job_id)
            if current is not None:
                current.started = True
            await job()
            logger.debug("Background job completed", job_id=job_id)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Background job failed", job_id=job_id)
        finally:
            if self._current(job_id) is not None:
                del self._jobs[job_id]

    def _current(self, job_id: str) -> _ScheduledJob | None:
        """The bookkeeping entry for job_id if it belongs to the running task."""
        scheduled = self._jobs.get(job_id)
        if scheduled is not None and scheduled.task is asyncio.current_task():
            return scheduled
        return None

    def cancel(self, job_id: str) -> bool:
        scheduled = self._jobs.pop(job_id, None)
        if scheduled is None:
            return False
        scheduled.task.cancel()
        return True

    def cancel_all(self) -> None:
        for scheduled in self._jobs.values():
            scheduled.task.cancel()
        self._jobs.clear()

    @property
    def pending(self) -> list[str]:
        return list(self._jobs)

    def is_scheduled(self, job_id: str) -> bool:
        return job_id in self._jobs

    async def wait_idle(self) -> None:
        """Wait until every scheduled or running job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
