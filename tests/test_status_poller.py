import asyncio

import pytest

from core.errors import GenerationFailed, PollTimeout, ProviderRejected, ProviderUnreachable
from schemas.job_models import JobState
from services.status_parser import meshy_status_parser, skybox_status_parser
from services.status_poller import PollState, StatusPoller


def make_poller(fetch, sleep, parser=skybox_status_parser, **kwargs):
    kwargs.setdefault("max_attempts", 60)
    kwargs.setdefault("interval_seconds", 5.0)
    return StatusPoller(fetch, parser, sleep=sleep, **kwargs)


def test_check_once_performs_exactly_one_query(meshy):
    meshy.statuses["T1"] = [{"status": "IN_PROGRESS", "progress": 35}]
    poller = StatusPoller(meshy.get_task, meshy_status_parser)

    status = asyncio.run(poller.check_once("T1"))

    assert status.state == JobState.IN_PROGRESS
    assert status.progress == 35
    assert meshy.status_calls == ["T1"]


def test_synchronous_poll_returns_on_success(blockade, fake_sleep):
    blockade.statuses["S1"] = [
        {"request": {"status": "pending", "queue_position": 2}},
        {"request": {"status": "processing"}},
        {"request": {"status": "complete", "file_url": "https://cdn.example/sky.jpg"}},
    ]
    poller = make_poller(blockade.get_request, fake_sleep)
    run = poller.new_run("S1")

    status = asyncio.run(run.run())

    assert status.state == JobState.SUCCEEDED
    assert status.result["file_url"] == "https://cdn.example/sky.jpg"
    assert run.state == PollState.SUCCEEDED
    assert run.attempt == 3
    assert fake_sleep.calls == [5.0, 5.0]


def test_synchronous_poll_times_out_at_last_attempt(blockade, fake_sleep):
    blockade.statuses["S1"] = [{"request": {"status": "processing"}}]
    run = make_poller(blockade.get_request, fake_sleep).new_run("S1")

    with pytest.raises(PollTimeout) as exc_info:
        asyncio.run(run.run())

    assert run.state == PollState.TIMED_OUT
    assert run.attempt == 60
    assert len(blockade.status_calls) == 60
    assert fake_sleep.total == pytest.approx(300.0)
    assert exc_info.value.details == {"attempts": 60}
    assert exc_info.value.status_code == 504


def test_terminal_state_on_final_attempt_is_not_a_timeout(blockade, fake_sleep):
    script = [{"status": "processing"}] * 59 + [{"status": "complete", "file_url": "https://cdn.example/s.jpg"}]
    blockade.statuses["S1"] = list(script)
    run = make_poller(blockade.get_request, fake_sleep).new_run("S1")

    status = asyncio.run(run.run())

    assert status.state == JobState.SUCCEEDED
    assert run.attempt == 60


@pytest.mark.parametrize("raw", ["error", "abort"])
def test_provider_failure_raises_generation_failed(blockade, fake_sleep, raw):
    blockade.statuses["S1"] = [
        {"request": {"status": "processing"}},
        {"request": {"status": raw, "error_message": "upstream GPU crashed"}},
    ]
    run = make_poller(blockade.get_request, fake_sleep).new_run("S1")

    with pytest.raises(GenerationFailed) as exc_info:
        asyncio.run(run.run())

    assert "upstream GPU crashed" in exc_info.value.message
    assert run.state == PollState.FAILED
    assert run.last_status.state == JobState.FAILED


def test_unreachable_attempt_is_consumed_and_polling_continues(fake_sleep):
    calls = []

    def flaky_fetch(task_id):
        calls.append(task_id)
        if len(calls) == 1:
            raise ProviderUnreachable("connection reset")
        return {"status": "complete", "file_url": "https://cdn.example/s.jpg"}

    run = make_poller(flaky_fetch, fake_sleep).new_run("S1")
    status = asyncio.run(run.run())

    assert status.state == JobState.SUCCEEDED
    assert run.attempt == 2
    assert fake_sleep.calls == [5.0]


def test_rejected_status_query_stops_the_loop(fake_sleep):
    def rejecting_fetch(task_id):
        raise ProviderRejected("Failed to check status", provider_status=404)

    run = make_poller(rejecting_fetch, fake_sleep).new_run("S1")

    with pytest.raises(ProviderRejected):
        asyncio.run(run.run())
    assert run.attempt == 1
    assert fake_sleep.calls == []
