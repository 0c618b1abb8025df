# -*- coding: utf-8 -*-
"""
This module provides the job and batch lifecycle operations of the bulk API:
creating and closing jobs, submitting batches of records, and collecting
per-record results once a batch is finalized.

Every function takes the transport client as first argument and performs a
single remote call; none of them retries. Callers that want retries on
transient failures wrap them with transient_retry().
"""


import logging
from dataclasses import replace
from typing import Optional

from tenacity import (retry, retry_if_exception_type, stop_after_attempt,
                      wait_exponential)

from ..utils.errors import (
    InvalidStateError,
    RemoteRejectedError,
    ResultAlignmentError,
    TransientError,
)
from .models import (
    Batch,
    BatchState,
    Job,
    JobState,
    OperationType,
    RecordResult,
    ResultSet,
)
from .records import SObjectList, record_fields


def transient_retry(
        attempts: int = 3,
        min_wait: float = 2,
        max_wait: float = 60,
        retry_on=TransientError
    ):
    """
    Build a retry decorator for calls that may fail with TransientError.

    Only retry_on (TransientError by default) is retried; every other error
    propagates at once. Non-idempotent calls pass RequestNotSentError so a
    request the remote side may already have accepted is never resent.
    The last error is re-raised when attempts are exhausted.
    """
    return retry(
        retry=retry_if_exception_type(retry_on),
        wait=wait_exponential(min=min_wait, max=max_wait),
        stop=stop_after_attempt(attempts),
        reraise=True
    )


#=============================================================================
# Job Handle
#=============================================================================

async def create_job(
        client,
        object_type: str,
        operation: OperationType | str,
        external_id_field: Optional[str] = None
    ) -> Job:
    """
    Create a new job for the given object type and operation.

    Args:
        client: Bulk API client.
        object_type (str): Target record type, e.g. "Account".
        operation (OperationType | str): insert, update, upsert or delete.
        external_id_field (str): External id field; required for upserts only.

    Returns:
        Job: The new job, in state Open.

    Raises:
        ValueError: If the arguments are inconsistent.
        RemoteRejectedError: If the remote side refuses the job.
    """
    operation = OperationType(operation)
    if not object_type:
        raise ValueError("object_type is required.")
    if operation == OperationType.UPSERT and not external_id_field:
        raise ValueError("Upsert jobs require an external_id_field.")
    if operation != OperationType.UPSERT and external_id_field:
        raise ValueError("external_id_field is only valid for upsert jobs.")

    logging.info(f"Creating {operation.value} job for {object_type}...")
    job = await client.create_job(object_type, operation, external_id_field)
    if job.state != JobState.OPEN:
        raise InvalidStateError(f"Job {job.id} was created in state {job.state.value}")
    logging.info(f"Job created with ID: {job.id}")
    return job


async def close_job(client, job: Job) -> Job:
    """
    Close a job so the remote side finalizes its pending batches.
    Does not wait for the batches to finish.

    Raises:
        InvalidStateError: If the job is not Open.
    """
    if job.state != JobState.OPEN:
        raise InvalidStateError(f"Cannot close job {job.id} in state {job.state.value}")
    logging.info(f"Closing job {job.id}...")
    closed = await client.close_job(job.id)
    logging.info(f"Job {job.id} is {closed.state.value}.")
    return job.with_state(closed.state)


async def abort_job(client, job: Job) -> Job:
    """
    Abort a job. Batches not yet processed will not be processed.

    Raises:
        InvalidStateError: If the job is already aborted.
    """
    if job.state == JobState.ABORTED:
        raise InvalidStateError(f"Job {job.id} is already aborted")
    logging.info(f"Aborting job {job.id}...")
    aborted = await client.abort_job(job.id)
    logging.info(f"Job {job.id} is {aborted.state.value}.")
    return job.with_state(aborted.state)


async def poll_job(client, job: Job) -> Job:
    """Refresh the state of a job."""
    refreshed = await client.get_job(job.id)
    if job.state == JobState.ABORTED and refreshed.state != JobState.ABORTED:
        logging.warning(f"Job {job.id} reported {refreshed.state.value} after being aborted.")
        return job
    return job.with_state(refreshed.state)


#=============================================================================
# Batch Submitter
#=============================================================================

async def submit_batch(client, job: Job, records) -> Batch:
    """
    Upload a container of records as a new batch of the job.

    Args:
        client: Bulk API client.
        job (Job): An open job.
        records: SObjectList, or any sequence of mappings / dataclass instances.

    Returns:
        Batch: The new batch; record_count equals the number of records sent.

    Raises:
        InvalidStateError: If the job is not Open.
        ValueError: If the container is empty.
    """
    if job.state != JobState.OPEN:
        raise InvalidStateError(
            f"Cannot submit a batch to job {job.id} in state {job.state.value}"
        )
    if isinstance(records, SObjectList):
        field_maps = records.field_maps()
    else:
        field_maps = [record_fields(record) for record in records]
    if not field_maps:
        raise ValueError("Cannot submit an empty batch.")

    logging.info(f"Submitting batch of {len(field_maps)} records to job {job.id}...")
    batch = await client.submit_batch(job.id, field_maps)
    if batch.record_count != len(field_maps):
        batch = replace(batch, record_count=len(field_maps))
    logging.info(f"Batch created with ID: {batch.id} ({batch.state.value})")
    return batch


#=============================================================================
# Result Collector
#=============================================================================

async def get_batch_result(client, batch: Batch) -> ResultSet:
    """
    Fetch the per-record results of a finalized batch.

    Position i of the returned ResultSet is the outcome of record i of the
    submitted container. Batches that ended Failed or Not Processed without
    any per-record result (an empty results document, or the remote
    InvalidBatch refusal to serve results) get one failed result per record,
    carrying the batch state message or else the remote message.

    Raises:
        InvalidStateError: If the batch is not in a terminal state.
        ResultAlignmentError: If the number of results does not match the
            number of submitted records.
        RemoteRejectedError: If the remote side refuses the download for
            any other reason.
        TransientError: On transport failure (not retried here).
    """
    if not batch.is_terminal:
        raise InvalidStateError(
            f"Batch {batch.id} is {batch.state.value}; results are only "
            "available once it is Completed, Failed or Not Processed"
        )

    logging.info(f"Downloading results for batch {batch.id}...")
    unprocessed = batch.state in (BatchState.FAILED, BatchState.NOT_PROCESSED)
    remote_message = None
    try:
        results = await client.get_batch_results(batch.job_id, batch.id)
    except RemoteRejectedError as e:
        # The remote side refuses result downloads of unprocessed batches
        if not (unprocessed and e.exception_code == "InvalidBatch"):
            raise
        results, remote_message = [], e.message

    if not results and unprocessed:
        message = batch.state_message or remote_message or f"Batch {batch.state.value}"
        logging.warning(f"Batch {batch.id} is {batch.state.value} with no record results: {message}")
        results = [
            RecordResult(id=None, success=False, created=False, error_message=message)
            for _ in range(batch.record_count)
        ]

    if len(results) != batch.record_count:
        raise ResultAlignmentError(
            f"Batch {batch.id} returned {len(results)} results "
            f"for {batch.record_count} submitted records"
        )

    failed = sum(1 for r in results if not r.success)
    if failed:
        logging.warning(f"Batch {batch.id}: {failed} of {len(results)} records failed.")
    else:
        logging.info(f"Batch {batch.id}: all {len(results)} records succeeded.")
    return ResultSet(batch_id=batch.id, records=tuple(results))
