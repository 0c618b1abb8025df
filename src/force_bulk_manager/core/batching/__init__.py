"""
Job and batch lifecycle for Force Bulk Manager.

Submodules:
    models:  Job, Batch, RecordResult, ResultSet, BulkRunResult and state enums
    records: SObject / SObjectList containers and chunking
    jobs:    Create, close and abort jobs; submit batches; collect results
    polling: BackoffSchedule and BatchPoller
    manager: ForceBulkManager, end-to-end orchestration
    summary: Run summaries

Example Usage:
    import force_bulk_manager as fbm

    job = await fbm.batching.jobs.create_job(client, "Account", "insert")
    batch = await fbm.batching.jobs.submit_batch(client, job, records)
    job = await fbm.batching.jobs.close_job(client, job)
    batch = await fbm.batching.polling.BatchPoller(client).wait_until_terminal(batch)
    results = await fbm.batching.jobs.get_batch_result(client, batch)
"""

from . import models
from . import records
from . import jobs
from . import polling
from . import manager
from . import summary

__all__ = [
    'models',
    'records',
    'jobs',
    'polling',
    'manager',
    'summary',
]
