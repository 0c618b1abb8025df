"""
Shared utilities for Force Bulk Manager.

Submodules:
    errors:      Exception hierarchy
    config:      BulkSettings (defaults, YAML files, environment variables)
    misc:        Logging setup and file helpers
    environment: .env loading (internal)
    clients:     Bulk API client creation
    datasource:  Reading records from JSONL, CSV or Parquet files

Example Usage:
    import force_bulk_manager as fbm

    fbm.utils.misc.setup_logging(verbose=True)
    settings = fbm.utils.config.BulkSettings.from_yaml('./bulk.yaml')
    client = fbm.utils.clients.create_bulk_client()
    records = fbm.utils.datasource.read_records('./accounts.csv')
"""

# clients and datasource depend on the batching package; they are attached
# by core/__init__.py once batching is importable.
from . import errors
from . import misc
from . import config
from . import environment

__all__ = [
    'errors',
    'misc',
    'config',
    'environment',
    'clients',
    'datasource',
]
