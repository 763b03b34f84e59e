from unittest.mock import patch

import pytest
import redis

from core.config import Settings
from core.redis_client import RedisClient, redis_pool_kwargs
from schemas.job_models import Job, JobKind, JobState, JobStatus


def make_job(task_id="T1", client_id="10.0.0.1", **kwargs):
    return Job(task_id=task_id, kind=JobKind.PREVIEW, client_id=client_id, **kwargs)


# ----------------------------------------------------------------------------
# Terminal observation
# ----------------------------------------------------------------------------

def test_first_terminal_observation_is_reported_once(registry):
    registry.register(make_job())

    assert registry.record_observation("T1", JobState.IN_PROGRESS) is False
    assert registry.record_observation("T1", JobState.SUCCEEDED) is True
    assert registry.record_observation("T1", JobState.SUCCEEDED) is False
    assert registry.record_observation("T1", JobState.FAILED) is False


def test_terminal_state_survives_a_later_regression(registry):
    registry.register(make_job())
    snapshot = JobStatus(state=JobState.SUCCEEDED, result={"model_urls": {"glb": "https://cdn.example/T1.glb"}})
    registry.record_observation("T1", JobState.SUCCEEDED, snapshot)

    registry.record_observation("T1", JobState.IN_PROGRESS)

    job = registry.get("T1")
    assert job.last_state == JobState.SUCCEEDED
    assert registry.terminal_status("T1") is snapshot
    assert registry.succeeded_preview("T1") is job


def test_quota_release_is_claimed_once(registry):
    registry.register(make_job())
    registry.record_observation("T1", JobState.FAILED)

    assert registry.claim_quota_release("T1") is not None
    assert registry.claim_quota_release("T1") is None


def test_unknown_task_is_never_terminal(registry):
    assert registry.record_observation("ghost", JobState.SUCCEEDED) is False
    assert registry.claim_quota_release("ghost") is None
    assert registry.terminal_status("ghost") is None


# ----------------------------------------------------------------------------
# Pruning
# ----------------------------------------------------------------------------

def test_prune_drops_jobs_that_never_reported_back(registry):
    registry.register(make_job("abandoned", submitted_at=1000.0))
    registry.register(make_job("recent", submitted_at=4000.0))

    removed = registry.prune(max_age_seconds=3600, now=4700.0)

    assert removed == 1
    assert registry.get("abandoned") is None
    assert registry.get("recent") is not None


def test_prune_ages_finished_jobs_from_their_terminal_observation(registry):
    registry.register(make_job(submitted_at=0.0))
    registry.record_observation("T1", JobState.SUCCEEDED)
    finished = registry.get("T1").terminal_at

    assert registry.prune(max_age_seconds=60, now=finished + 30) == 0
    assert registry.prune(max_age_seconds=60, now=finished + 61) == 1
    assert len(registry) == 0


def test_prune_far_in_the_future_empties_the_registry(registry):
    registry.register(make_job("T1"))
    registry.register(make_job("T2"))
    registry.record_observation("T2", JobState.EXPIRED)

    registry.prune(max_age_seconds=0, now=10 ** 12)

    assert len(registry) == 0


# ----------------------------------------------------------------------------
# Redis handle
# ----------------------------------------------------------------------------

def test_redis_pool_kwargs_follow_settings():
    plain = redis_pool_kwargs(Settings(REDIS_HOST="cache", REDIS_PORT=6380))
    assert plain["host"] == "cache"
    assert plain["port"] == 6380
    assert plain["decode_responses"] is True
    assert "password" not in plain
    assert "connection_class" not in plain

    secure = redis_pool_kwargs(Settings(REDIS_SSL=True, REDIS_PASSWORD="pw"))
    assert secure["connection_class"] is redis.SSLConnection
    assert secure["password"] == "pw"


def test_redis_client_connects_lazily_and_closes():
    with patch("core.redis_client.ConnectionPool") as pool_cls, \
            patch("core.redis_client.redis.Redis") as redis_cls:
        handle = RedisClient(Settings())
        assert handle.connected is False
        pool_cls.assert_not_called()

        client = handle.get_client()
        assert handle.get_client() is client
        redis_cls.return_value.ping.assert_called_once_with()

        handle.close()
        pool_cls.return_value.disconnect.assert_called_once_with()
        assert handle.connected is False


def test_redis_client_failed_ping_stays_unconnected():
    with patch("core.redis_client.ConnectionPool") as pool_cls, \
            patch("core.redis_client.redis.Redis") as redis_cls:
        redis_cls.return_value.ping.side_effect = redis.ConnectionError("refused")
        handle = RedisClient(Settings())

        with pytest.raises(redis.ConnectionError):
            handle.get_client()

        assert handle.connected is False
        pool_cls.return_value.disconnect.assert_called_once_with()
