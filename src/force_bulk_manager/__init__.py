"""
Force Bulk Manager - Bulk data loads through asynchronous job/batch APIs

A toolkit for running bulk insert, update, upsert and delete jobs against the
Salesforce Bulk API. A job is created for an object type and operation, record
containers are uploaded as batches, the job is closed, and every batch is
polled concurrently (with capped exponential backoff) until its per-record
results can be collected.

Key Features:
    - Generic (SObject) and typed (dataclass) records in the same pipeline
    - Concurrent asyncio polling with an independent backoff per batch
    - Results returned in submission order, aligned record by record
    - Per-batch failure isolation with an aggregate run result
    - Deadline and cancellation support

Package Structure:
    batching:  Job/batch lifecycle (records, jobs, polling, manager, summary)
    transport: HTTP client and XML codec for the bulk API
    utils:     Shared utilities (errors, settings, clients, data sources)

Example Usage:

    Basic Workflow:
        import asyncio
        import force_bulk_manager as fbm

        async def main():
            async with fbm.utils.clients.create_bulk_client() as client:
                job = await fbm.batching.jobs.create_job(client, "Account", "insert")
                batch = await fbm.batching.jobs.submit_batch(
                    client, job, fbm.SObjectList([fbm.SObject(Name="Acme")])
                )
                job = await fbm.batching.jobs.close_job(client, job)
                poller = fbm.batching.polling.BatchPoller(client)
                batch = await poller.wait_until_terminal(batch)
                results = await fbm.batching.jobs.get_batch_result(client, batch)

        asyncio.run(main())

    High-Level Interface:
        async def main():
            async with fbm.utils.clients.create_bulk_client() as client:
                manager = fbm.ForceBulkManager(client, show_progress=True)
                result = await manager.run_job_and_poll(
                    "Account", "insert", [records_batch_1, records_batch_2],
                    timeout=600,
                )
                result.raise_for_failures()
                new_ids = [r.id for r in result[0]]

Environment Setup:
    Required environment variables (or arguments to create_bulk_client):
    - SALESFORCE_INSTANCE_URL
    - SALESFORCE_ACCESS_TOKEN
    Optional:
    - SALESFORCE_API_VERSION
    - FORCE_BULK_* settings (see core.utils.config)

    These can be set via .env files in the current working directory
    (.env, .env.local).
"""

__version__ = "0.1.0"

# Load environment on package import
from .core.utils.environment import setup_environment
setup_environment()

# Export core API modules
from . import core
batching = core.batching
transport = core.transport
utils = core.utils
ForceBulkManager = core.ForceBulkManager
BulkSettings = core.BulkSettings
SObject = core.SObject
SObjectList = core.SObjectList
OperationType = core.OperationType

__all__ = [
    '__version__',
    'batching',          # fbm.batching.*
    'transport',         # fbm.transport.*
    'utils',             # fbm.utils.*
    'ForceBulkManager',  # fbm.ForceBulkManager()
    'BulkSettings',
    'SObject',
    'SObjectList',
    'OperationType',
]

# Clean up namespace
del setup_environment, core
