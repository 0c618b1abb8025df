# -*- coding: utf-8 -*-

import logging

from ..transport.client import BulkApiClient, DEFAULT_API_VERSION, DEFAULT_TIMEOUT
from .environment import get_credentials
from .misc import mask_token


def create_bulk_client(
        instance_url=None,
        access_token=None,
        api_version=None,
        timeout=None,
        transport=None,
        settings=None
    ):
    """
    Create a bulk API client.

    Args:
        instance_url (str): Org base URL. If not provided, it will be fetched
            from SALESFORCE_INSTANCE_URL.
        access_token (str): Session token. If not provided, it will be fetched
            from SALESFORCE_ACCESS_TOKEN.
        api_version (str): API version. Defaults to settings.api_version when
            settings are given, else SALESFORCE_API_VERSION or the package default.
        timeout (float): Per-request timeout in seconds. Defaults to
            settings.request_timeout when settings are given.
        transport (httpx.AsyncBaseTransport): Optional custom transport.
        settings (BulkSettings): Optional settings supplying api_version and
            request_timeout.
    """
    env = get_credentials()

    instance_url = instance_url or env.instance_url
    if not instance_url:
        raise ValueError("No instance URL provided or found in environment.")

    access_token = access_token or env.access_token
    if not access_token:
        raise ValueError("No access token provided or found in environment.")

    if settings is not None:
        api_version = api_version or settings.api_version
        timeout = timeout or settings.request_timeout
    api_version = api_version or env.api_version or DEFAULT_API_VERSION
    timeout = timeout or DEFAULT_TIMEOUT

    client = BulkApiClient(
        instance_url=instance_url,
        access_token=access_token,
        api_version=api_version,
        timeout=timeout,
        transport=transport,
    )
    logging.info(f"Bulk API client created for {client.base_url} "
                 f"(token {mask_token(access_token)}, timeout {timeout}s).")
    return client
