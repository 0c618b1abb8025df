"""End-to-end orchestration tests against the in-memory bulk API."""
import asyncio
import time
from dataclasses import dataclass
from typing import Optional

import pytest

from force_bulk_manager.core.batching.manager import ForceBulkManager
from force_bulk_manager.core.batching.models import BatchState, JobState, OperationType
from force_bulk_manager.core.batching.records import SObject, SObjectList
from force_bulk_manager.core.utils.config import BulkSettings
from force_bulk_manager.core.utils.errors import (
    BulkRunError,
    DeadlineExceeded,
    OrchestrationCancelled,
    RemoteRejectedError,
    RequestNotSentError,
    TransientError,
)

from fakes import BatchPlan, FakeBulkApi


@dataclass
class Account:
    Name: str
    Id: Optional[str] = None
    Industry: Optional[str] = None


def run(coro):
    return asyncio.run(coro)


def accounts(*names):
    return SObjectList(SObject(Name=name) for name in names)


@pytest.fixture
def manager(fake_api, fast_settings):
    return ForceBulkManager(fake_api, fast_settings)


def test_insert_three_accounts(manager, fake_api):
    result = run(manager.run_job_and_poll("Account", "insert", [accounts("A", "B", "C")]))

    assert result.ok
    assert result.job.state is JobState.CLOSED
    (result_set,) = result.result_sets
    assert len(result_set) == 3
    assert all(r.success and r.created for r in result_set)
    assert len({r.id for r in result_set}) == 3
    assert all(r.id.startswith("001") for r in result_set)
    assert [fields["Name"] for fields in fake_api.store["Account"].values()] == ["A", "B", "C"]


def test_update_then_delete(manager, fake_api):
    inserted = run(manager.run_job_and_poll("Account", "insert", [accounts("A", "B")]))
    ids = [r.id for r in inserted.result_sets[0]]

    updates = SObjectList(SObject(Id=record_id, Industry="Tech") for record_id in ids)
    updated = run(manager.run_job_and_poll("Account", OperationType.UPDATE, [updates]))
    assert [r.id for r in updated.result_sets[0]] == ids
    assert all(r.success and not r.created for r in updated.result_sets[0])
    assert all(fake_api.store["Account"][i]["Industry"] == "Tech" for i in ids)

    deleted = run(manager.run_job_and_poll("Account", "delete", [SObjectList.of_ids(ids)]))
    assert all(r.success for r in deleted.result_sets[0])
    assert fake_api.store["Account"] == {}

    again = run(manager.run_job_and_poll("Account", "delete", [SObjectList.of_ids(ids[:1])]))
    (failed,) = again.result_sets[0]
    assert not failed.success
    assert failed.status_code == "ENTITY_IS_DELETED"


def test_typed_records(manager, fake_api):
    result = run(manager.run_job_and_poll(
        "Account", "insert", [[Account(Name="A", Industry="Tech"), Account(Name="B")]]
    ))
    assert result.ok
    stored = list(fake_api.store["Account"].values())
    assert stored == [{"Name": "A", "Industry": "Tech"}, {"Name": "B"}]


def test_record_level_failures_do_not_fail_the_batch(manager):
    records = SObjectList([SObject(Name="A"), SObject(Phone="555"), SObject(Name="C")])
    result = run(manager.run_job_and_poll("Account", "insert", [records]))

    assert result.ok
    result_set = result.result_sets[0]
    assert [r.success for r in result_set] == [True, False, True]
    assert result_set[1].id is None
    assert "Name" in result_set[1].error_message


def test_results_follow_submission_order_not_completion_order(fake_api, fast_settings):
    fake_api.plans.extend([BatchPlan(polls=6), BatchPlan(polls=1), BatchPlan(polls=3)])
    manager = ForceBulkManager(fake_api, fast_settings)
    containers = [accounts("a1", "a2"), accounts("b1"), accounts("c1", "c2", "c3")]

    result = run(manager.run_job_and_poll("Account", "insert", containers))

    assert result.ok
    assert [len(rs) for rs in result.result_sets] == [2, 1, 3]
    assert [rs.batch_id for rs in result.result_sets] == [b.id for b in result.batches]
    assert [b.record_count for b in result.batches] == [2, 1, 3]
    assert all(b.state is BatchState.COMPLETED for b in result.batches)

    fetched = [arg for name, arg in fake_api.calls if name == "get_batch_results"]
    assert fetched[0] == result.batches[1].id
    assert fetched[-1] == result.batches[0].id


def test_batches_are_polled_concurrently(fast_settings):
    api = FakeBulkApi(plans=[BatchPlan(polls=1, poll_delay=0.2) for _ in range(4)])
    manager = ForceBulkManager(api, fast_settings)

    started = time.monotonic()
    result = run(manager.run_job_and_poll("Account", "insert", [accounts(str(i)) for i in range(4)]))
    elapsed = time.monotonic() - started

    assert result.ok
    assert elapsed < 0.6


def test_partial_failure_is_aggregated(fast_settings):
    api = FakeBulkApi(plans=[
        BatchPlan(),
        BatchPlan(result_errors=[RemoteRejectedError("InvalidBatch : Records not processed")]),
        BatchPlan(poll_failures=10),
        BatchPlan(),
    ])
    manager = ForceBulkManager(api, fast_settings)

    result = run(manager.run_job_and_poll("Account", "insert", [accounts(str(i)) for i in range(4)]))

    assert not result.ok
    assert result.collected_indices == [0, 3]
    assert result.failed_indices == [1, 2]
    assert isinstance(result.failures[0].error, RemoteRejectedError)
    assert isinstance(result.failures[1].error, TransientError)
    assert result.interruption is None

    with pytest.raises(BulkRunError) as excinfo:
        result.raise_for_failures()
    assert excinfo.value.failed_indices == [1, 2]


def test_failed_batch_is_collected_with_failed_records(fast_settings):
    api = FakeBulkApi(plans=[
        BatchPlan(),
        BatchPlan(state=BatchState.FAILED, state_message="InvalidBatch : bad XML"),
        BatchPlan(state=BatchState.NOT_PROCESSED),
    ])
    manager = ForceBulkManager(api, fast_settings)

    result = run(manager.run_job_and_poll("Account", "insert", [accounts("a"), accounts("b", "c"), accounts("d")]))

    assert result.failures == []
    assert [b.state for b in result.batches] == [
        BatchState.COMPLETED, BatchState.FAILED, BatchState.NOT_PROCESSED,
    ]
    assert [r.success for r in result.result_sets[1]] == [False, False]
    assert result.result_sets[1][0].error_message == "InvalidBatch : bad XML"
    assert [r.error_message for r in result.result_sets[2]] == ["Records not processed"]


def test_transient_result_fetch_is_retried(fast_settings):
    api = FakeBulkApi(plans=[BatchPlan(result_errors=[TransientError("connection reset")])])
    manager = ForceBulkManager(api, fast_settings)

    result = run(manager.run_job_and_poll("Account", "insert", [accounts("A")]))

    assert result.ok
    assert sum(1 for name, _ in api.calls if name == "get_batch_results") == 2


def test_unsent_submit_is_retried(fake_api, fast_settings):
    fake_api.submit_errors.append(RequestNotSentError("connection refused"))
    manager = ForceBulkManager(fake_api, fast_settings)

    result = run(manager.run_job_and_poll("Account", "insert", [accounts("A")]))

    assert result.ok
    assert len(result.batches) == 1
    assert sum(1 for name, _ in fake_api.calls if name == "submit_batch") == 2


def test_ambiguous_submit_failure_is_not_resent(fake_api, fast_settings):
    fake_api.submit_errors.append(TransientError("read timed out"))
    manager = ForceBulkManager(fake_api, fast_settings)

    with pytest.raises(TransientError):
        run(manager.run_job_and_poll("Account", "insert", [accounts("A")]))

    assert sum(1 for name, _ in fake_api.calls if name == "submit_batch") == 1
    (job,) = fake_api.jobs.values()
    assert job.state is JobState.ABORTED


def test_submit_failure_aborts_job(fake_api, fast_settings):
    manager = ForceBulkManager(fake_api, fast_settings)
    fake_api.submit_errors.append(RemoteRejectedError("InvalidBatch : too large"))

    with pytest.raises(RemoteRejectedError):
        run(manager.run_job_and_poll("Account", "insert", [accounts("A"), accounts("B")]))

    (job,) = fake_api.jobs.values()
    assert job.state is JobState.ABORTED
    assert ("abort_job", job.id) in fake_api.calls
    assert not any(name == "close_job" for name, _ in fake_api.calls)


def test_create_rejected_stops_before_submission(fast_settings):
    api = FakeBulkApi(rejected_objects={"Acount"})
    manager = ForceBulkManager(api, fast_settings)

    with pytest.raises(RemoteRejectedError):
        run(manager.run_job_and_poll("Acount", "insert", [accounts("A")]))
    assert [name for name, _ in api.calls] == ["create_job"]


def test_empty_containers_are_rejected(manager, fake_api):
    with pytest.raises(ValueError):
        run(manager.run_job_and_poll("Account", "insert", []))
    with pytest.raises(ValueError):
        run(manager.run_job_and_poll("Account", "insert", [accounts("A"), SObjectList()]))
    assert fake_api.calls == []


def test_deadline_returns_partial_result(fast_settings):
    api = FakeBulkApi(plans=[BatchPlan(polls=1), BatchPlan(polls=10**9)])
    manager = ForceBulkManager(api, fast_settings)

    result = run(manager.run_job_and_poll(
        "Account", "insert", [accounts("A"), accounts("B")], timeout=0.2
    ))

    assert isinstance(result.interruption, DeadlineExceeded)
    assert result.collected_indices == [0]
    assert result.pending_indices == [1]
    assert not any(name == "abort_job" for name, _ in api.calls)
    with pytest.raises(BulkRunError):
        result.raise_for_failures()


def test_cancel_event_stops_polling(fast_settings):
    api = FakeBulkApi(plans=[BatchPlan(polls=10**9)])
    manager = ForceBulkManager(api, fast_settings)

    async def scenario():
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)
        return await manager.run_job_and_poll("Account", "insert", [accounts("A")],
                                              cancel_event=cancel)

    result = run(scenario())

    assert type(result.interruption) is OrchestrationCancelled
    assert result.pending_indices == [0]
    assert result.failures == []


def test_load_records_chunks_in_order(fake_api, fast_settings):
    settings = BulkSettings(**{**fast_settings.__dict__, "max_records_per_batch": 2})
    manager = ForceBulkManager(fake_api, settings)

    result = run(manager.load_records("Account", "insert", accounts("A", "B", "C", "D", "E")))

    assert [b.record_count for b in result.batches] == [2, 2, 1]
    assert [r.success for rs in result.result_sets for r in rs] == [True] * 5
    assert [f["Name"] for f in fake_api.store["Account"].values()] == ["A", "B", "C", "D", "E"]


def test_settle_delay_applies_once_per_batch(fake_api, fast_settings, recording_sleep):
    settings = BulkSettings(**{**fast_settings.__dict__, "settle_delay": 0.5})
    fake_api.plans.extend([BatchPlan(polls=3), BatchPlan(polls=1)])
    manager = ForceBulkManager(fake_api, settings, sleep=recording_sleep)

    result = run(manager.run_job_and_poll("Account", "insert", [accounts("A"), accounts("B")]))

    assert result.ok
    assert recording_sleep.delays.count(0.5) == 2


def test_deadline_covers_job_setup(fake_api, fast_settings):
    fake_api.submit_delay = 1.0
    manager = ForceBulkManager(fake_api, fast_settings)

    started = time.monotonic()
    with pytest.raises(DeadlineExceeded):
        run(manager.run_job_and_poll("Account", "insert", [accounts("A")], timeout=0.1))

    assert time.monotonic() - started < 0.9
    (job,) = fake_api.jobs.values()
    assert job.state is JobState.ABORTED
    assert not any(name == "close_job" for name, _ in fake_api.calls)


def test_failure_keeps_last_polled_batch_state(fast_settings):
    api = FakeBulkApi(plans=[BatchPlan(polls=10, poll_failures=5, failures_after=2)])
    manager = ForceBulkManager(api, fast_settings)

    result = run(manager.run_job_and_poll("Account", "insert", [accounts("A")]))

    (failure,) = result.failures
    assert isinstance(failure.error, TransientError)
    assert failure.batch.state is BatchState.IN_PROGRESS
    assert result.batches[0].state is BatchState.IN_PROGRESS


def test_from_settings_configures_client(monkeypatch):
    monkeypatch.setenv("SALESFORCE_INSTANCE_URL", "https://example.my.salesforce.com")
    monkeypatch.setenv("SALESFORCE_ACCESS_TOKEN", "tok")
    settings = BulkSettings(api_version="45.0", request_timeout=5.0)

    manager = ForceBulkManager.from_settings(settings)

    assert manager.settings is settings
    assert manager.client.base_url == "https://example.my.salesforce.com/services/async/45.0"
    assert manager.client.timeout == 5.0
    run(manager.client.aclose())
