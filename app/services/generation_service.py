# services/generation_service.py
"""
Generation orchestration.

Control flow for every job:
  feature guard -> input validation -> credential check -> admission
  -> submission -> observation (client-driven or server-owned)
  -> asset resolution

The quota slot taken at admission is released exactly once: when the job
is first observed terminal, or immediately if submission itself fails.
"""

from typing import Any, Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from core.config import settings
from core.errors import InvalidInput, RateLimited, ServiceDisabled, ServiceError
from core.logger import logger
from integrations.blockade_client import blockade_client
from integrations.meshy_client import meshy_client
from schemas.job_models import Job, JobKind, JobState, JobStatus, ResolvedAsset
from services.asset_resolver import AssetResolver, meshy_asset_resolver, skybox_asset_resolver
from services.generation_limiter import GenerationRateLimiter
from services.job_registry import JobRegistry
from services.job_submitter import JobSubmitter, SkyboxSubmitter, validate_prompt
from services.pipeline_coordinator import PipelineCoordinator
from services.quota_store import InMemoryQuotaStore, QuotaResetTask, QuotaStore, RedisQuotaStore
from services.status_parser import meshy_status_parser, skybox_status_parser
from services.status_poller import PollState, StatusPoller
from utils.log_response import log_job_event

_TERMINAL_EVENTS = {
    JobState.SUCCEEDED: "job_succeeded",
    JobState.FAILED: "job_failed",
    JobState.EXPIRED: "job_expired",
}


class GenerationService:

    def __init__(
        self,
        limiter: GenerationRateLimiter,
        registry: JobRegistry,
        submitter: JobSubmitter,
        model_poller: StatusPoller,
        coordinator: PipelineCoordinator,
        model_resolver: AssetResolver,
        skybox_submitter: SkyboxSubmitter,
        skybox_poller: StatusPoller,
        skybox_resolver: AssetResolver,
        disabled: bool = False,
    ):
        self.limiter = limiter
        self.registry = registry
        self.submitter = submitter
        self.model_poller = model_poller
        self.coordinator = coordinator
        self.model_resolver = model_resolver
        self.skybox_submitter = skybox_submitter
        self.skybox_poller = skybox_poller
        self.skybox_resolver = skybox_resolver
        self.disabled = disabled

    # ========================================================================
    # GUARDS
    # ========================================================================

    def ensure_enabled(self) -> None:
        if self.disabled:
            raise ServiceDisabled()

    def _admit(self, client_id: str, kind: JobKind) -> None:
        try:
            self.limiter.admit(client_id)
        except RateLimited as e:
            log_job_event(
                "rate_limited",
                client_id=client_id,
                kind=kind.value,
                **e.details,
            )
            raise

    # ========================================================================
    # QUOTA BOOKKEEPING
    # ========================================================================

    def _observe(self, task_id: str, status: JobStatus) -> None:
        if not self.registry.record_observation(task_id, status.state, status):
            return
        job = self.registry.get(task_id)
        log_job_event(
            _TERMINAL_EVENTS[status.state],
            task_id=task_id,
            client_id=job.client_id,
            kind=job.kind.value,
            error=status.error,
        )
        self._release(task_id)

    def _release(self, task_id: str) -> None:
        job = self.registry.claim_quota_release(task_id)
        if job is None:
            return
        self.limiter.decrement_generation(job.client_id)
        log_job_event(
            "quota_released",
            task_id=task_id,
            client_id=job.client_id,
            kind=job.kind.value,
            active=self.limiter.get_active_count(job.client_id),
        )

    def get_active_count(self, client_id: str) -> int:
        return self.limiter.get_active_count(client_id)

    # ========================================================================
    # 3D MODEL FLOW (client-driven polling)
    # ========================================================================

    async def start_model_generation(self, prompt: Any, client_id: str) -> Job:
        self.ensure_enabled()
        prompt = validate_prompt(prompt)
        self.submitter.ensure_configured()
        self._admit(client_id, JobKind.PREVIEW)

        try:
            task_id = await run_in_threadpool(
                self.submitter.submit_generation, prompt, JobKind.PREVIEW
            )
        except ServiceError:
            # Job never started; give the slot back
            self.limiter.decrement_generation(client_id)
            raise

        job = self.registry.register(Job(
            task_id=task_id,
            kind=JobKind.PREVIEW,
            client_id=client_id,
            prompt=prompt,
        ))
        log_job_event(
            "job_submitted",
            task_id=task_id,
            client_id=client_id,
            kind=JobKind.PREVIEW.value,
            prompt=prompt,
        )
        return job

    async def check_model_status(
        self, task_id: Optional[str]
    ) -> Tuple[JobStatus, Optional[ResolvedAsset]]:
        """
        One upstream status query.

        The first terminal observation releases the owner's quota slot,
        before asset resolution can fail. Once a task has been seen terminal,
        that first terminal status is what every later poll reports.

        Raises:
            NoAssetUrl: job succeeded but carries no usable URL
        """
        self.ensure_enabled()
        if not task_id:
            raise InvalidInput("taskId is required")

        status = await self.model_poller.check_once(task_id)
        self._observe(task_id, status)
        first_terminal = self.registry.terminal_status(task_id)
        if first_terminal is not None:
            status = first_terminal

        if status.state != JobState.SUCCEEDED:
            return status, None

        try:
            asset = self.model_resolver.resolve(status.result, task_id)
        except ServiceError:
            log_job_event("asset_unresolved", task_id=task_id)
            raise
        return status, asset

    async def refine_model(self, preview_task_id: Optional[str]) -> Job:
        self.ensure_enabled()
        job = await self.coordinator.refine(preview_task_id)
        log_job_event(
            "job_submitted",
            task_id=job.task_id,
            client_id=job.client_id,
            kind=JobKind.REFINE.value,
            preview_task_id=preview_task_id,
        )
        return job

    # ========================================================================
    # SKYBOX FLOW (server-owned polling)
    # ========================================================================

    async def generate_environment(self, prompt: Any, client_id: str) -> Tuple[Job, ResolvedAsset]:
        """
        Submit a skybox and block until it is terminal.

        Holds the calling request for up to the poll budget. The slot is
        released when the loop ends, whatever the outcome.
        """
        self.ensure_enabled()
        prompt = validate_prompt(prompt)
        self.skybox_submitter.ensure_configured()
        self._admit(client_id, JobKind.SKYBOX)

        job: Optional[Job] = None
        run = None
        try:
            skybox_id = await run_in_threadpool(self.skybox_submitter.submit_skybox, prompt)
            job = self.registry.register(Job(
                task_id=skybox_id,
                kind=JobKind.SKYBOX,
                client_id=client_id,
                prompt=prompt,
            ))
            log_job_event(
                "job_submitted",
                task_id=skybox_id,
                client_id=client_id,
                kind=JobKind.SKYBOX.value,
                prompt=prompt,
            )

            run = self.skybox_poller.new_run(skybox_id)
            status = await run.run()
            asset = self.skybox_resolver.resolve(status.result, skybox_id)
            logger.info(f"[SKYBOX] Success! URL: {asset.asset_url}")
            return job, asset

        except ServiceError as e:
            log_job_event(
                "job_timeout" if run is not None and run.state == PollState.TIMED_OUT else "job_failed",
                task_id=job.task_id if job else None,
                client_id=client_id,
                kind=JobKind.SKYBOX.value,
                error=e.message,
            )
            raise

        finally:
            if job is None:
                self.limiter.decrement_generation(client_id)
            else:
                if run is not None and run.last_status is not None:
                    self.registry.record_observation(job.task_id, run.last_status.state, run.last_status)
                self._release(job.task_id)


def build_quota_store() -> QuotaStore:
    if settings.QUOTA_BACKEND == "redis":
        from core.redis_client import get_redis
        return RedisQuotaStore(get_redis(), prefix=settings.REDIS_QUOTA_PREFIX)
    if settings.QUOTA_BACKEND != "memory":
        logger.warning(f"Unknown QUOTA_BACKEND '{settings.QUOTA_BACKEND}', using memory")
    return InMemoryQuotaStore()


def build_generation_service(quota_store: Optional[QuotaStore] = None) -> GenerationService:
    store = quota_store or build_quota_store()
    registry = JobRegistry()
    submitter = JobSubmitter(meshy_client)

    return GenerationService(
        limiter=GenerationRateLimiter(store, limit=settings.MAX_CONCURRENT_GENERATIONS),
        registry=registry,
        submitter=submitter,
        model_poller=StatusPoller(
            meshy_client.get_task,
            meshy_status_parser,
            label="MESHY",
        ),
        coordinator=PipelineCoordinator(
            submitter,
            registry,
            submit_timeout_seconds=settings.REFINE_SUBMIT_TIMEOUT_SECONDS,
        ),
        model_resolver=meshy_asset_resolver,
        skybox_submitter=SkyboxSubmitter(blockade_client),
        skybox_poller=StatusPoller(
            blockade_client.get_request,
            skybox_status_parser,
            max_attempts=settings.SKYBOX_POLL_MAX_ATTEMPTS,
            interval_seconds=settings.SKYBOX_POLL_INTERVAL_SECONDS,
            label="SKYBOX",
        ),
        skybox_resolver=skybox_asset_resolver,
        disabled=settings.GENERATION_DISABLED,
    )


generation_service = build_generation_service()

quota_reset_task = QuotaResetTask(
    generation_service.limiter.store,
    interval_seconds=settings.QUOTA_RESET_INTERVAL_SECONDS,
    on_tick=lambda: generation_service.registry.prune(settings.JOB_RETENTION_SECONDS),
)
