# schemas/job_models.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from enum import Enum
import time


class JobKind(str, Enum):
    """Stages a generation job can belong to"""
    PREVIEW = "preview"
    REFINE = "refine"
    SKYBOX = "skybox"


class JobState(str, Enum):
    """Classified job status as observed from the provider"""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.EXPIRED})


class JobStatus(BaseModel):
    """
    One observation of a provider task.

    `result` holds the raw success payload for asset resolution,
    `error` the provider message for FAILED/EXPIRED.
    """
    state: JobState
    raw_status: Optional[str] = None
    progress: int = Field(0, ge=0, le=100)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    queue_position: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


class Job(BaseModel):
    """
    In-process record of a submitted provider task.

    The provider owns the authoritative state; this only tracks what the
    gateway needs for quota bookkeeping and stage chaining.
    """
    task_id: str
    kind: JobKind
    client_id: str
    prompt: Optional[str] = None
    preview_task_id: Optional[str] = None
    submitted_at: float = Field(default_factory=time.time)
    holds_quota: bool = True
    last_state: JobState = JobState.PENDING
    terminal_at: Optional[float] = None
    terminal_status: Optional[JobStatus] = None
    quota_released: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.terminal_at is not None


class ClientQuota(BaseModel):
    client_id: str
    active_count: int = Field(0, ge=0)


class RateLimitCheck(BaseModel):
    allowed: bool
    current: int
    limit: int


class ResolvedAsset(BaseModel):
    asset_url: str
    thumbnail_url: Optional[str] = None
