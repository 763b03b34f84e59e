import json
from datetime import datetime, timezone
from core.logger import logger

FAILURE_EVENTS = {
    "job_failed",
    "job_expired",
    "job_timeout",
    "asset_unresolved",
    "rate_limited",
}


def log_job_event(
    event: str,
    task_id: str = None,
    client_id: str = None,
    kind: str = None,
    **fields
) -> None:
    """
    One-line JSON log of a job lifecycle event.
    Failure events are logged at WARNING.
    """
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event": event,
        "task_id": task_id,
        "client_id": client_id,
        "kind": kind,
    }
    for key, value in fields.items():
        if isinstance(value, str):
            value = value[:500]  # Truncate long prompts / provider messages
        log_data[key] = value

    if event in FAILURE_EVENTS:
        logger.warning(json.dumps(log_data, default=str))
    else:
        logger.info(json.dumps(log_data, default=str))
