"""
Wire access to the bulk job/batch API.

Submodules:
    client: BulkApiClient, async HTTP client over httpx
    codec:  XML encoding and decoding of job, batch, record and result payloads
"""

from . import codec
from . import client
from .client import BulkApiClient

__all__ = [
    'codec',
    'client',
    'BulkApiClient',
]
