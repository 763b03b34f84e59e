# services/pipeline_coordinator.py

import asyncio
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from core.errors import MissingSource, ProviderTimeout, SubmissionTimeout
from core.logger import logger
from schemas.job_models import Job, JobKind
from services.job_registry import JobRegistry
from services.job_submitter import JobSubmitter


class PipelineCoordinator:
    """
    Chains preview -> refine.

    The refine job continues the preview's logical job: it is not admitted
    against the quota and does not hold a slot. Only the submission call is
    bounded here; the refine job itself is polled by the caller.
    """

    def __init__(
        self,
        submitter: JobSubmitter,
        registry: JobRegistry,
        submit_timeout_seconds: float = 8.0,
    ):
        self.submitter = submitter
        self.registry = registry
        self.submit_timeout_seconds = submit_timeout_seconds

    async def refine(self, preview_task_id: Optional[str]) -> Job:
        """
        Raises:
            MissingSource: no preview job with that id was observed SUCCEEDED
            SubmissionTimeout: provider did not acknowledge within the ceiling
        """
        preview = self.registry.succeeded_preview(preview_task_id)
        if preview is None:
            logger.warning(f"[Meshy] Refine rejected, no succeeded preview for {preview_task_id}")
            raise MissingSource(preview_task_id)

        self.submitter.ensure_configured()

        try:
            task_id = await asyncio.wait_for(
                run_in_threadpool(
                    self.submitter.submit_generation,
                    preview.prompt,
                    JobKind.REFINE,
                    preview.task_id,
                    self.submit_timeout_seconds,
                ),
                timeout=self.submit_timeout_seconds,
            )
        except (asyncio.TimeoutError, ProviderTimeout) as e:
            logger.error(
                f"[Meshy] Refine submission for {preview.task_id} not acknowledged "
                f"within {self.submit_timeout_seconds:g}s"
            )
            raise SubmissionTimeout(self.submit_timeout_seconds) from e

        job = self.registry.register(Job(
            task_id=task_id,
            kind=JobKind.REFINE,
            client_id=preview.client_id,
            prompt=preview.prompt,
            preview_task_id=preview.task_id,
            holds_quota=False,
        ))
        logger.info(f"[Meshy] Refine started - TaskId: {task_id}, PreviewTaskId: {preview.task_id}")
        return job
