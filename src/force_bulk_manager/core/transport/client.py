# -*- coding: utf-8 -*-

"""
Async HTTP transport for the bulk job/batch REST resources.

BulkApiClient performs exactly one HTTP exchange per call and never retries;
retry policy belongs to the callers in core.batching. Transport problems are
translated into the package error hierarchy:

    connect failures (request never sent)          -> RequestNotSentError
    other timeouts and transport errors, HTTP 5xx,
    408 and 429                                    -> TransientError
    remote InvalidJobState                         -> InvalidStateError
    any other HTTP 4xx or error envelope           -> RemoteRejectedError
"""

import logging
from typing import List, Optional

import httpx

from ..batching.models import Batch, Job, JobState, OperationType, RecordResult
from ..utils.errors import (
    InvalidStateError,
    RemoteRejectedError,
    RequestNotSentError,
    TransientError,
)
from ..utils.misc import mask_token
from .codec import (
    decode_batch_info,
    decode_batch_results,
    decode_error,
    decode_job_info,
    encode_job_request,
    encode_job_state,
    encode_records,
)

DEFAULT_API_VERSION = "59.0"
DEFAULT_TIMEOUT = 120.0

XML_CONTENT_TYPE = "application/xml; charset=UTF-8"
INVALID_STATE_CODES = {"InvalidJobState"}
TRANSIENT_STATUS_CODES = {408, 429}


class BulkApiClient:
    """
    Client for the bulk API of one org.

    Args:
        instance_url (str): Base URL of the org, e.g. https://na1.my.salesforce.com
        access_token (str): Session token attached to every request.
        api_version (str): API version, e.g. "59.0".
        timeout (float): Per-request timeout in seconds.
        transport (httpx.AsyncBaseTransport): Optional custom transport.

    Usage:
        async with BulkApiClient(url, token) as client:
            job = await client.create_job("Account", OperationType.INSERT)
    """

    def __init__(
        self,
        instance_url: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not instance_url:
            raise ValueError("instance_url is required.")
        if not access_token:
            raise ValueError("access_token is required.")
        self.instance_url = instance_url.rstrip("/")
        self.api_version = str(api_version).lstrip("v")
        self.base_url = f"{self.instance_url}/services/async/{self.api_version}"
        self.timeout = timeout
        self._access_token = access_token
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "X-SFDC-Session": access_token,
                "Content-Type": XML_CONTENT_TYPE,
                "Accept": "application/xml",
            },
            transport=transport,
        )

    def __repr__(self):
        return (
            f"BulkApiClient(base_url={self.base_url!r}, "
            f"access_token={mask_token(self._access_token)!r})"
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        await self._http.aclose()

    async def _request(self, method: str, path: str, content: Optional[bytes] = None) -> bytes:
        try:
            response = await self._http.request(method, path, content=content)
        except (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout) as e:
            raise RequestNotSentError(f"{method} {path} could not be sent: {e}") from e
        except httpx.TimeoutException as e:
            raise TransientError(f"{method} {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientError(f"{method} {path} failed: {e}") from e

        status = response.status_code
        if status >= 500 or status in TRANSIENT_STATUS_CODES:
            raise TransientError(f"{method} {path} returned HTTP {status}")
        if status >= 400:
            code, message = decode_error(response.content)
            logging.debug(f"{method} {path} rejected with HTTP {status}: {code} {message}")
            if code in INVALID_STATE_CODES:
                raise InvalidStateError(f"{code}: {message}")
            raise RemoteRejectedError(message, exception_code=code, status_code=status)
        return response.content

    #=========================================================================
    # Jobs
    #=========================================================================

    async def create_job(
            self,
            object_type: str,
            operation: OperationType,
            external_id_field: Optional[str] = None
        ) -> Job:
        body = encode_job_request(object_type, operation, external_id_field)
        content = await self._request("POST", "/job", body)
        return decode_job_info(content)

    async def get_job(self, job_id: str) -> Job:
        content = await self._request("GET", f"/job/{job_id}")
        return decode_job_info(content)

    async def close_job(self, job_id: str) -> Job:
        content = await self._request("POST", f"/job/{job_id}", encode_job_state(JobState.CLOSED))
        return decode_job_info(content)

    async def abort_job(self, job_id: str) -> Job:
        content = await self._request("POST", f"/job/{job_id}", encode_job_state(JobState.ABORTED))
        return decode_job_info(content)

    #=========================================================================
    # Batches
    #=========================================================================

    async def submit_batch(self, job_id: str, field_maps: List[dict]) -> Batch:
        content = await self._request("POST", f"/job/{job_id}/batch", encode_records(field_maps))
        return decode_batch_info(content, record_count=len(field_maps))

    async def get_batch(self, job_id: str, batch_id: str, record_count: Optional[int] = None) -> Batch:
        content = await self._request("GET", f"/job/{job_id}/batch/{batch_id}")
        return decode_batch_info(content, record_count=record_count)

    async def get_batch_results(self, job_id: str, batch_id: str) -> List[RecordResult]:
        content = await self._request("GET", f"/job/{job_id}/batch/{batch_id}/result")
        return decode_batch_results(content)
