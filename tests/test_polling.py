"""Tests for batch polling and backoff."""
import asyncio
import itertools

import pytest

from force_bulk_manager.core.batching.models import Batch, BatchState
from force_bulk_manager.core.batching.polling import BackoffSchedule, BatchPoller
from force_bulk_manager.core.utils.errors import TransientError

from fakes import BatchPlan, FakeBulkApi


def run(coro):
    return asyncio.run(coro)


def submitted(api, plan):
    api.plans.append(plan)

    async def scenario():
        job = await api.create_job("Account", "insert")
        return await api.submit_batch(job.id, [{"Name": "A"}, {"Name": "B"}])

    return run(scenario())


def test_backoff_grows_and_is_capped():
    schedule = BackoffSchedule(initial=1.0, factor=2.0, max_interval=10.0)
    intervals = list(itertools.islice(schedule.intervals(), 7))
    assert intervals == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0, 10.0]
    assert all(a <= b for a, b in zip(intervals, intervals[1:]))


def test_backoff_without_cap():
    schedule = BackoffSchedule(initial=0.5, factor=3.0, max_interval=None)
    assert list(itertools.islice(schedule.intervals(), 4)) == [0.5, 1.5, 4.5, 13.5]


@pytest.mark.parametrize("kwargs", [
    {"initial": 0},
    {"factor": 0.5},
    {"initial": 5.0, "max_interval": 1.0},
])
def test_backoff_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        BackoffSchedule(**kwargs)


def test_poll_batch_skips_remote_call_for_terminal_batch(fake_api):
    poller = BatchPoller(fake_api)
    batch = Batch(id="751A", job_id="750A", state=BatchState.FAILED, record_count=1)
    assert run(poller.poll_batch(batch)) is batch
    assert fake_api.calls == []


def test_wait_until_terminal_follows_schedule_then_settles_once(fake_api, recording_sleep):
    batch = submitted(fake_api, BatchPlan(polls=5))
    poller = BatchPoller(fake_api, BackoffSchedule(1.0, 2.0, 4.0),
                         settle_delay=3.0, sleep=recording_sleep)

    final = run(poller.wait_until_terminal(batch))

    assert final.state is BatchState.COMPLETED
    assert final.record_count == 2
    assert fake_api.polls_of(batch.id) == 5
    assert recording_sleep.delays == [1.0, 2.0, 4.0, 4.0, 3.0]


def test_no_settle_delay_when_zero(fake_api, recording_sleep):
    batch = submitted(fake_api, BatchPlan(polls=1))
    poller = BatchPoller(fake_api, settle_delay=0.0, sleep=recording_sleep)
    run(poller.wait_until_terminal(batch))
    assert recording_sleep.delays == []


def test_transient_poll_failures_are_tolerated(fake_api, recording_sleep):
    batch = submitted(fake_api, BatchPlan(polls=1, poll_failures=2))
    poller = BatchPoller(fake_api, BackoffSchedule(1.0, 2.0, 60.0), settle_delay=0.5,
                         max_poll_failures=3, sleep=recording_sleep)

    final = run(poller.wait_until_terminal(batch))

    assert final.state is BatchState.COMPLETED
    assert recording_sleep.delays == [1.0, 2.0, 0.5]


def test_gives_up_after_consecutive_poll_failures(fake_api, recording_sleep):
    batch = submitted(fake_api, BatchPlan(polls=1, poll_failures=10))
    poller = BatchPoller(fake_api, settle_delay=0.0, max_poll_failures=3,
                         sleep=recording_sleep)

    with pytest.raises(TransientError):
        run(poller.wait_until_terminal(batch))
    assert fake_api.polls_of(batch.id) == 3


def test_failed_and_not_processed_are_terminal(recording_sleep):
    api = FakeBulkApi()
    failed = submitted(api, BatchPlan(polls=2, state=BatchState.FAILED, state_message="boom"))
    skipped = submitted(api, BatchPlan(polls=1, state=BatchState.NOT_PROCESSED))
    poller = BatchPoller(api, settle_delay=0.0, sleep=recording_sleep)

    assert run(poller.wait_until_terminal(failed)).state is BatchState.FAILED
    assert run(poller.wait_until_terminal(skipped)).state is BatchState.NOT_PROCESSED


def test_poller_rejects_bad_arguments(fake_api):
    with pytest.raises(ValueError):
        BatchPoller(fake_api, settle_delay=-1)
    with pytest.raises(ValueError):
        BatchPoller(fake_api, max_poll_failures=0)


def test_on_poll_sees_every_successful_poll(fake_api, recording_sleep):
    batch = submitted(fake_api, BatchPlan(polls=3, poll_failures=1, failures_after=1))
    poller = BatchPoller(fake_api, settle_delay=0.0, sleep=recording_sleep)
    seen = []

    run(poller.wait_until_terminal(batch, on_poll=seen.append))

    assert [b.state for b in seen] == [
        BatchState.IN_PROGRESS, BatchState.IN_PROGRESS, BatchState.COMPLETED,
    ]
