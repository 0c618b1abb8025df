# -*- coding: utf-8 -*-

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from tqdm.auto import tqdm

from ..utils.config import BulkSettings
from ..utils.errors import DeadlineExceeded, OrchestrationCancelled, RequestNotSentError
from .jobs import (
    abort_job,
    close_job,
    create_job,
    get_batch_result,
    submit_batch,
    transient_retry,
)
from .models import (
    Batch,
    BatchFailure,
    BulkRunResult,
    Job,
    OperationType,
    ResultSet,
)
from .polling import BatchPoller
from .records import chunk_records


class ForceBulkManager:
    """
    A class to run bulk load jobs end to end: create a job, submit its
    batches, close it, poll every batch concurrently and collect results
    in submission order.

    Args:
        client: Bulk API client (see core.transport.client.BulkApiClient).
        settings (BulkSettings): Polling, retry and sizing settings.
        show_progress (bool): Show a progress bar while batches are polled.
        sleep: Coroutine function used for polling waits; asyncio.sleep by default.
    """

    def __init__(
        self,
        client,
        settings: Optional[BulkSettings] = None,
        show_progress: bool = False,
        sleep=asyncio.sleep,
    ):
        self.client = client
        self.settings = settings or BulkSettings()
        self.show_progress = show_progress
        self.poller = BatchPoller.from_settings(client, self.settings, sleep=sleep)
        retry_args = dict(
            attempts=self.settings.retry_attempts,
            min_wait=self.settings.retry_min_wait,
            max_wait=self.settings.retry_max_wait,
        )
        # Creating a job or a batch is not idempotent: only resend requests
        # that never reached the remote side
        self._retry = transient_retry(**retry_args)
        self._retry_unsent = transient_retry(retry_on=RequestNotSentError, **retry_args)

    @classmethod
    def from_settings(
            cls,
            settings: Optional[BulkSettings] = None,
            show_progress: bool = False,
            **client_kwargs
        ):
        """
        Build a manager and its client from settings. api_version and
        request_timeout come from the settings; credentials from client_kwargs
        or the environment (see utils.clients.create_bulk_client).
        """
        # Imported here: the transport imports this package
        from ..utils.clients import create_bulk_client

        settings = settings or BulkSettings()
        client = create_bulk_client(settings=settings, **client_kwargs)
        return cls(client, settings, show_progress=show_progress)

    def chunk(self, records):
        """Split records into containers of at most settings.max_records_per_batch."""
        return chunk_records(records, self.settings.max_records_per_batch)

    #=========================================================================
    # Submission
    #=========================================================================

    async def run_job(
            self,
            object_type: str,
            operation: OperationType | str,
            containers: Sequence,
            external_id_field: Optional[str] = None
        ) -> Tuple[Job, List[Batch]]:
        """
        Create a job, submit one batch per container in order and close the job,
        without waiting for the batches.

        If a submission fails (or the call is cancelled), the job is aborted
        before the error is re-raised, so no partial load keeps running unattended.

        Job creation and batch submission are only retried on
        RequestNotSentError: a timeout after the request went out may mean the
        remote side already accepted it, and resending would load the records twice.

        Returns:
            tuple: (closed Job, list of Batch in submission order).
        """
        containers = list(containers)
        if not containers:
            raise ValueError("No record containers provided.")

        if any(len(records) == 0 for records in containers):
            raise ValueError("Record containers cannot be empty.")

        job = await self._retry_unsent(create_job)(self.client, object_type, operation, external_id_field)
        batches = []
        try:
            for index, records in enumerate(containers):
                batch = await self._retry_unsent(submit_batch)(self.client, job, records)
                logging.debug(f"Batch {batch.id} recorded at index {index}")
                batches.append(batch)
        except (Exception, asyncio.CancelledError) as e:
            logging.error(f"Submitting batch {len(batches)} of job {job.id} failed: {e!r}")
            try:
                await abort_job(self.client, job)
            except Exception as abort_error:
                logging.warning(f"Could not abort job {job.id}: {abort_error}")
            raise

        job = await self._retry(close_job)(self.client, job)
        return job, batches

    #=========================================================================
    # Polling and collection
    #=========================================================================

    async def _drive_batch(self, index: int, batch: Batch):
        """Poll one batch to completion and collect its results."""
        latest = batch

        def remember(polled):
            nonlocal latest
            latest = polled

        try:
            latest = await self.poller.wait_until_terminal(batch, on_poll=remember)
            result_set = await self._retry(get_batch_result)(self.client, latest)
        except Exception as e:
            logging.error(f"Batch {batch.id} (index {index}) failed while {latest.state.value}: {e}")
            return index, latest, BatchFailure(index=index, batch=latest, error=e)
        return index, latest, result_set

    async def poll_and_collect(
            self,
            job: Job,
            batches: Sequence[Batch],
            timeout: Optional[float] = None,
            cancel_event: Optional[asyncio.Event] = None,
        ) -> BulkRunResult:
        """
        Drive batches concurrently until every one is terminal and collected.

        Args:
            job (Job): The owning job.
            batches (list[Batch]): Batches in submission order.
            timeout (float | None): Seconds before polling stops with DeadlineExceeded.
            cancel_event (asyncio.Event | None): Stops polling with
                OrchestrationCancelled when set.

        Returns:
            BulkRunResult: Result sets by submission index, per-batch failures
                and the interruption, if any.
        """
        result = BulkRunResult(job=job, batches=list(batches))
        if not batches:
            return result

        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        pending = {
            asyncio.create_task(self._drive_batch(index, batch), name=f"batch-{batch.id}")
            for index, batch in enumerate(batches)
        }
        cancel_waiter = (
            asyncio.create_task(cancel_event.wait(), name="cancel-watch")
            if cancel_event is not None else None
        )

        logging.info(f"Polling {len(pending)} batches of job {job.id}...")
        progress = tqdm(total=len(pending), desc="Polling batches", disable=not self.show_progress)
        try:
            while pending:
                remaining = None if deadline is None else max(0.0, deadline - loop.time())
                waiting = pending | ({cancel_waiter} if cancel_waiter else set())
                done, _ = await asyncio.wait(waiting, timeout=remaining,
                                             return_when=asyncio.FIRST_COMPLETED)

                for task in done & pending:
                    pending.discard(task)
                    index, batch, outcome = task.result()
                    result.batches[index] = batch
                    if isinstance(outcome, ResultSet):
                        result.result_sets[index] = outcome
                    else:
                        result.failures.append(outcome)
                    progress.update(1)

                if not pending:
                    break
                if cancel_waiter is not None and cancel_waiter in done:
                    result.interruption = OrchestrationCancelled(
                        f"Run cancelled with {len(pending)} batches still pending"
                    )
                    break
                if deadline is not None and loop.time() >= deadline:
                    result.interruption = DeadlineExceeded(
                        f"Deadline of {timeout}s exceeded with {len(pending)} batches still pending"
                    )
                    break
        finally:
            progress.close()
            for task in pending:
                task.cancel()
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            leftovers = list(pending) + ([cancel_waiter] if cancel_waiter else [])
            if leftovers:
                await asyncio.gather(*leftovers, return_exceptions=True)

        result.failures.sort(key=lambda f: f.index)
        if result.interruption is not None:
            logging.warning(f"{result.interruption}; job {job.id} is left running remotely.")
        logging.info(f"All batches done: {len(result.collected_indices)} collected, "
                     f"{len(result.failures)} failed, {len(result.pending_indices)} pending.")
        return result

    async def run_job_and_poll(
            self,
            object_type: str,
            operation: OperationType | str,
            containers: Sequence,
            external_id_field: Optional[str] = None,
            timeout: Optional[float] = None,
            cancel_event: Optional[asyncio.Event] = None,
        ) -> BulkRunResult:
        """
        Run a full job: create, submit every container, close, then poll all
        batches concurrently and collect their results.

        Args:
            object_type (str): Target record type, e.g. "Account".
            operation (OperationType | str): insert, update, upsert or delete.
            containers (list): Record containers, one batch each.
            external_id_field (str): External id field, for upserts.
            timeout (float | None): Overall time budget in seconds, from the
                start of the call, covering job setup and polling. When it runs
                out during polling, polling stops and the partial result is
                returned with a DeadlineExceeded interruption; during setup,
                DeadlineExceeded is raised.
            cancel_event (asyncio.Event | None): Set it to stop polling early.

        Returns:
            BulkRunResult: One slot per container, in container order.
                Use raise_for_failures() to turn failures into an exception.

        Raises:
            RemoteRejectedError, InvalidStateError, TransientError: If the job
                cannot be created, a batch cannot be submitted, or the job
                cannot be closed.
            DeadlineExceeded: If timeout runs out before the job is closed;
                a job caught while batches are being submitted is aborted.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()

        setup = self.run_job(object_type, operation, containers, external_id_field)
        if timeout is None:
            job, batches = await setup
        else:
            try:
                job, batches = await asyncio.wait_for(setup, timeout)
            except asyncio.TimeoutError as e:
                raise DeadlineExceeded(
                    f"Deadline of {timeout}s exceeded before job setup finished"
                ) from e

        remaining = None
        if timeout is not None:
            remaining = max(0.0, timeout - (loop.time() - started))
        result = await self.poll_and_collect(job, batches, timeout=remaining,
                                             cancel_event=cancel_event)
        return result

    async def load_records(
            self,
            object_type: str,
            operation: OperationType | str,
            records,
            external_id_field: Optional[str] = None,
            timeout: Optional[float] = None,
            cancel_event: Optional[asyncio.Event] = None,
        ) -> BulkRunResult:
        """Chunk a flat list of records into batches and run them as one job."""
        return await self.run_job_and_poll(
            object_type,
            operation,
            self.chunk(records),
            external_id_field=external_id_field,
            timeout=timeout,
            cancel_event=cancel_event,
        )
