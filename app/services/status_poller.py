# services/status_poller.py
"""
Provider task observation.

Two distinct operations with different resource profiles:

- check_once: one upstream query, returns immediately. The client owns the
  polling cadence (3D model flow).
- wait_for_terminal: server-owned loop with a fixed attempt budget and fixed
  spacing. It holds the originating request for up to
  max_attempts * interval_seconds (skybox flow).
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Dict, Optional

from fastapi.concurrency import run_in_threadpool

from core.errors import GenerationFailed, PollTimeout, ProviderUnreachable
from core.logger import logger
from schemas.job_models import JobState, JobStatus
from services.status_parser import StatusParser

FetchStatus = Callable[[str], Dict[str, Any]]


class PollState(str, Enum):
    PENDING = "pending"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class PollRun:
    """
    State machine of one synchronous poll:
    PENDING -> POLLING(attempt) -> SUCCEEDED | FAILED | TIMED_OUT
    """

    def __init__(
        self,
        task_id: str,
        fetch: FetchStatus,
        parser: StatusParser,
        max_attempts: int,
        interval_seconds: float,
        sleep=asyncio.sleep,
        label: str = "POLL",
    ):
        self.task_id = task_id
        self.fetch = fetch
        self.parser = parser
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.sleep = sleep
        self.label = label

        self.state = PollState.PENDING
        self.attempt = 0
        self.waited_seconds = 0.0
        self.last_status: Optional[JobStatus] = None

    @property
    def finished(self) -> bool:
        return self.state in (PollState.SUCCEEDED, PollState.FAILED, PollState.TIMED_OUT)

    async def run(self) -> JobStatus:
        """
        Drive the task to a terminal state.

        Returns:
            JobStatus: the SUCCEEDED observation

        Raises:
            GenerationFailed: provider reported error, abort or expiry
            PollTimeout: attempt budget exhausted
            ProviderRejected: a status query was answered with non-2xx
        """
        self.state = PollState.POLLING

        while self.attempt < self.max_attempts:
            self.attempt += 1
            status = await self._observe()

            if status is not None:
                self.last_status = status
                logger.info(
                    f"[{self.label}] {self.task_id} attempt {self.attempt}/{self.max_attempts}: "
                    f"{status.raw_status}"
                    + (f" (queue {status.queue_position})" if status.queue_position is not None else "")
                )

                if status.state == JobState.SUCCEEDED:
                    self.state = PollState.SUCCEEDED
                    return status
                if status.is_terminal:
                    self.state = PollState.FAILED
                    raise GenerationFailed(f"Generation failed: {status.error}")

            await self.sleep(self.interval_seconds)
            self.waited_seconds += self.interval_seconds

        self.state = PollState.TIMED_OUT
        raise PollTimeout(self.attempt, self.waited_seconds)

    async def _observe(self) -> Optional[JobStatus]:
        try:
            payload = await run_in_threadpool(self.fetch, self.task_id)
        except ProviderUnreachable as e:
            # Transient transport failure still consumes the attempt
            logger.warning(f"[{self.label}] {self.task_id} attempt {self.attempt} unreachable: {e}")
            return None
        return self.parser.parse(payload)


class StatusPoller:

    def __init__(
        self,
        fetch: FetchStatus,
        parser: StatusParser,
        max_attempts: int = 60,
        interval_seconds: float = 5.0,
        sleep=asyncio.sleep,
        label: str = "POLL",
    ):
        self.fetch = fetch
        self.parser = parser
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.sleep = sleep
        self.label = label

    async def check_once(self, task_id: str) -> JobStatus:
        """Exactly one status query; terminal or not."""
        payload = await run_in_threadpool(self.fetch, task_id)
        status = self.parser.parse(payload)
        logger.info(f"[{self.label}] Task {task_id}: {status.raw_status}")
        return status

    def new_run(self, task_id: str) -> PollRun:
        return PollRun(
            task_id,
            self.fetch,
            self.parser,
            max_attempts=self.max_attempts,
            interval_seconds=self.interval_seconds,
            sleep=self.sleep,
            label=self.label,
        )

    async def wait_for_terminal(self, task_id: str) -> JobStatus:
        return await self.new_run(task_id).run()
