import os
import time

# Settings are read at import time; configure before importing the app
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["QUOTA_BACKEND"] = "memory"
os.environ["GENERATION_DISABLED"] = "false"
os.environ.setdefault("MESHY_API_KEY", "test-meshy-key")
os.environ.setdefault("BLOCKADE_API_KEY", "test-blockade-key")

import pytest

from core.errors import ConfigurationMissing, ProviderRejected
from schemas.job_models import Job, JobKind, JobState
from services.asset_resolver import meshy_asset_resolver, skybox_asset_resolver
from services.generation_limiter import GenerationRateLimiter
from services.generation_service import GenerationService
from services.job_registry import JobRegistry
from services.job_submitter import JobSubmitter, SkyboxSubmitter
from services.pipeline_coordinator import PipelineCoordinator
from services.quota_store import InMemoryQuotaStore
from services.status_parser import meshy_status_parser, skybox_status_parser
from services.status_poller import StatusPoller


class ScriptedProvider:
    """
    Stand-in for a provider client.

    `statuses[task_id]` is a list of payloads returned in order; the last
    one repeats forever.
    """

    def __init__(self, task_ids=None, api_key="test-key"):
        self.api_key = api_key
        self.task_ids = list(task_ids or ["T1", "T2", "T3", "T4"])
        self.statuses = {}
        self.submissions = []
        self.status_calls = []
        self.submit_error = None
        self.submit_delay = 0.0

    @property
    def configured(self):
        return bool(self.api_key)

    def ensure_configured(self):
        if not self.configured:
            raise ConfigurationMissing("provider API key not configured")

    def _submit(self, record):
        self.ensure_configured()
        if self.submit_delay:
            time.sleep(self.submit_delay)
        self.submissions.append(record)
        if self.submit_error is not None:
            raise self.submit_error
        return self.task_ids.pop(0)

    def _status(self, task_id):
        self.status_calls.append(task_id)
        script = self.statuses[task_id]
        if len(script) > 1:
            return script.pop(0)
        return script[0]


class FakeMeshyClient(ScriptedProvider):

    def create_preview(self, prompt):
        return self._submit(("preview", prompt))

    def create_refine(self, preview_task_id, timeout=None):
        return self._submit(("refine", preview_task_id, timeout))

    def get_task(self, task_id):
        return self._status(task_id)


class FakeBlockadeClient(ScriptedProvider):

    def create_skybox(self, prompt):
        return self._submit(("skybox", prompt))

    def get_request(self, skybox_id):
        return self._status(skybox_id)


class RecordingSleep:
    def __init__(self):
        self.calls = []

    @property
    def total(self):
        return sum(self.calls)

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def meshy():
    return FakeMeshyClient()


@pytest.fixture
def blockade():
    return FakeBlockadeClient(task_ids=["S1", "S2", "S3"])


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def quota_store():
    return InMemoryQuotaStore()


@pytest.fixture
def registry():
    return JobRegistry()


@pytest.fixture
def service(meshy, blockade, fake_sleep, quota_store, registry):
    submitter = JobSubmitter(meshy)
    return GenerationService(
        limiter=GenerationRateLimiter(quota_store, limit=2),
        registry=registry,
        submitter=submitter,
        model_poller=StatusPoller(meshy.get_task, meshy_status_parser, label="MESHY"),
        coordinator=PipelineCoordinator(submitter, registry, submit_timeout_seconds=8.0),
        model_resolver=meshy_asset_resolver,
        skybox_submitter=SkyboxSubmitter(blockade),
        skybox_poller=StatusPoller(
            blockade.get_request,
            skybox_status_parser,
            max_attempts=60,
            interval_seconds=5.0,
            sleep=fake_sleep,
            label="SKYBOX",
        ),
        skybox_resolver=skybox_asset_resolver,
    )


@pytest.fixture
def seed_preview(registry):
    """Register a preview job and mark it observed as SUCCEEDED."""

    def _seed(task_id="P1", client_id="10.0.0.1", prompt="a red sports car", state=JobState.SUCCEEDED):
        job = registry.register(Job(
            task_id=task_id,
            kind=JobKind.PREVIEW,
            client_id=client_id,
            prompt=prompt,
        ))
        registry.record_observation(task_id, state)
        return job

    return _seed


@pytest.fixture
def provider_rejection():
    return ProviderRejected("Meshy API rejected request", provider_status=400, body={"message": "bad prompt"})
