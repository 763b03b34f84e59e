# services/job_registry.py
"""
In-process registry of submitted provider tasks.

Tracks who owns each task and whether its first terminal observation has
already happened, so the quota slot is released exactly once no matter how
many times the task is polled afterwards.
"""

import time
from typing import Dict, Optional

from core.logger import logger
from schemas.job_models import Job, JobKind, JobState, JobStatus


class JobRegistry:

    def __init__(self):
        self._jobs: Dict[str, Job] = {}

    def register(self, job: Job) -> Job:
        self._jobs[job.task_id] = job
        return job

    def get(self, task_id: str) -> Optional[Job]:
        return self._jobs.get(task_id)

    def record_observation(
        self, task_id: str, state: JobState, status: Optional[JobStatus] = None
    ) -> bool:
        """
        Store the latest observed state of a task.

        Returns True only on the first terminal observation. A terminal job
        keeps its first terminal state (and status snapshot) even if the
        provider later reports a regression.
        """
        job = self._jobs.get(task_id)
        if job is None:
            return False

        if job.is_terminal:
            if job.last_state != state:
                logger.warning(
                    f"Task {task_id} reported {state.value} after terminal "
                    f"{job.last_state.value}; first terminal observation stands"
                )
            return False

        job.last_state = state
        if state.is_terminal:
            job.terminal_at = time.time()
            job.terminal_status = status
            return True
        return False

    def claim_quota_release(self, task_id: str) -> Optional[Job]:
        """
        Mark the job's slot as released and hand the job back.

        Returns None when the job does not hold a slot or it was already
        released.
        """
        job = self._jobs.get(task_id)
        if job is None or not job.holds_quota or job.quota_released:
            return None
        job.quota_released = True
        return job

    def succeeded_preview(self, task_id: Optional[str]) -> Optional[Job]:
        if not task_id:
            return None
        job = self._jobs.get(task_id)
        if job is None or job.kind != JobKind.PREVIEW:
            return None
        if job.last_state != JobState.SUCCEEDED:
            return None
        return job

    def terminal_status(self, task_id: str) -> Optional[JobStatus]:
        job = self._jobs.get(task_id)
        return job.terminal_status if job is not None else None

    def prune(self, max_age_seconds: float, now: Optional[float] = None) -> int:
        """
        Drop records older than max_age_seconds.

        Finished jobs age from their terminal observation, unfinished ones
        from submission (a client that stops polling never reports back).
        """
        now = time.time() if now is None else now
        stale = [
            task_id for task_id, job in self._jobs.items()
            if now - (job.terminal_at if job.terminal_at is not None else job.submitted_at) > max_age_seconds
        ]
        for task_id in stale:
            del self._jobs[task_id]
        if stale:
            logger.info(f"Pruned {len(stale)} stale job records")
        return len(stale)

    def __len__(self) -> int:
        return len(self._jobs)
