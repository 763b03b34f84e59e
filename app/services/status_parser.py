# services/status_parser.py
"""
Provider status payload parsers.

Providers disagree on where the status lives: the skybox API sometimes
wraps the task under a "request" object, sometimes not. Each parser walks
an explicit fallback chain of containers and returns a classified JobStatus,
so the quirks of one provider never leak into the poller.
"""

from typing import Any, Dict, Iterable, Optional, Tuple

from schemas.job_models import JobState, JobStatus

GENERIC_FAILURE_MESSAGE = "Generation failed"

SUCCESS_STATUSES = frozenset({"complete", "succeeded"})
FAILURE_STATUSES = frozenset({"error", "abort", "failed"})
EXPIRED_STATUSES = frozenset({"expired"})
PENDING_STATUSES = frozenset({"pending", "queued", "dispatched"})


def get_path(payload: Any, path: str) -> Any:
    """Resolve a dotted path like "task_error.message"; None if any hop is missing."""
    current = payload
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def first_present(payload: Any, paths: Iterable[str]) -> Optional[Any]:
    for path in paths:
        value = get_path(payload, path)
        if value not in (None, ""):
            return value
    return None


def locate_status_block(
    payload: Any,
    nested_keys: Tuple[str, ...] = ("request",),
) -> Dict[str, Any]:
    """
    Find the object that carries the "status" field.

    Nested containers are tried first, then the top level.
    """
    if not isinstance(payload, dict):
        return {}
    for key in nested_keys:
        nested = payload.get(key)
        if isinstance(nested, dict) and "status" in nested:
            return nested
    return payload


def classify_status(raw_status: Optional[str]) -> JobState:
    normalized = (raw_status or "").strip().lower()
    if normalized in SUCCESS_STATUSES:
        return JobState.SUCCEEDED
    if normalized in FAILURE_STATUSES:
        return JobState.FAILED
    if normalized in EXPIRED_STATUSES:
        return JobState.EXPIRED
    if not normalized or normalized in PENDING_STATUSES:
        return JobState.PENDING
    return JobState.IN_PROGRESS


def _progress(value: Any) -> int:
    try:
        return max(0, min(100, int(float(value))))
    except (TypeError, ValueError):
        return 0


def _queue_position(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class StatusParser:
    """
    Base parser: status/progress/error field names are class attributes.
    """

    nested_keys: Tuple[str, ...] = ("request",)
    progress_fields: Tuple[str, ...] = ("progress",)
    error_fields: Tuple[str, ...] = ("error_message", "message")
    queue_fields: Tuple[str, ...] = ("queue_position",)

    def parse(self, payload: Any) -> JobStatus:
        block = locate_status_block(payload, self.nested_keys)
        raw_status = block.get("status")
        raw_status = str(raw_status) if raw_status is not None else None
        state = classify_status(raw_status)

        status = JobStatus(
            state=state,
            raw_status=raw_status,
            progress=_progress(first_present(block, self.progress_fields)),
            queue_position=_queue_position(first_present(block, self.queue_fields)),
        )

        if state == JobState.SUCCEEDED:
            status.result = block
            status.progress = 100
        elif state in (JobState.FAILED, JobState.EXPIRED):
            message = first_present(block, self.error_fields)
            status.error = str(message) if message else GENERIC_FAILURE_MESSAGE
        return status


class MeshyStatusParser(StatusParser):
    error_fields = ("task_error.message", "error_message", "message")


class SkyboxStatusParser(StatusParser):
    error_fields = ("error_message", "message")


meshy_status_parser = MeshyStatusParser()
skybox_status_parser = SkyboxStatusParser()
