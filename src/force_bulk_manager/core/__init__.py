"""
Core functionality for Force Bulk Manager.

Architecture:
    utils/      - Shared utilities and infrastructure
      ├── errors/      - Exception hierarchy
      ├── config/      - BulkSettings (defaults, YAML, environment)
      ├── misc/        - Logging setup and file helpers
      ├── environment/ - .env loading
      ├── clients/     - Bulk API client creation
      └── datasource/  - Reading records from JSONL, CSV or Parquet

    transport/  - Wire access to the bulk API
      ├── client/  - Async HTTP client (httpx)
      └── codec/   - XML payload encoding and decoding

    batching/   - Job/batch lifecycle
      ├── models/  - Job, Batch, RecordResult, ResultSet, BulkRunResult
      ├── records/ - Record containers
      ├── jobs/    - Create/close/abort jobs, submit batches, collect results
      ├── polling/ - Backoff schedule and batch poller
      ├── manager/ - High-level orchestration
      └── summary/ - Run summaries
"""

# Light utilities first, they are needed by everything below
from . import utils
from . import transport
from . import batching
from .utils import clients
from .utils import datasource

from .batching.manager import ForceBulkManager
from .batching.models import OperationType
from .batching.records import SObject, SObjectList
from .utils.config import BulkSettings

__all__ = [
    'batching',
    'transport',
    'utils',
    'ForceBulkManager',
    'BulkSettings',
    'OperationType',
    'SObject',
    'SObjectList',
]
