# -*- coding: utf-8 -*-

"""
Settings for bulk runs: API version, polling cadence, retries and batch sizing.

Settings can be built from keyword arguments, a YAML file, or FORCE_BULK_*
environment variables (after .env files are loaded):

    FORCE_BULK_API_VERSION, FORCE_BULK_POLL_INTERVAL, FORCE_BULK_BACKOFF_FACTOR,
    FORCE_BULK_MAX_POLL_INTERVAL, FORCE_BULK_SETTLE_DELAY,
    FORCE_BULK_MAX_POLL_FAILURES, FORCE_BULK_RETRY_ATTEMPTS,
    FORCE_BULK_RETRY_MIN_WAIT, FORCE_BULK_RETRY_MAX_WAIT,
    FORCE_BULK_MAX_RECORDS_PER_BATCH, FORCE_BULK_REQUEST_TIMEOUT
"""

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .misc import read_yaml, write_yaml

ENV_PREFIX = "FORCE_BULK_"


@dataclass
class BulkSettings:
    """
    Tunables for job orchestration. Times are in seconds.

    Attributes:
        api_version (str): Remote API version.
        poll_interval (float): First wait between status polls of a batch.
        backoff_factor (float): Growth of the wait after each non-terminal poll.
        max_poll_interval (float | None): Upper bound of the wait; None disables the cap.
        settle_delay (float): Pause after a batch turns terminal, before fetching results.
        max_poll_failures (int): Consecutive failed status polls tolerated per batch.
        retry_attempts (int): Attempts for create/submit/close/fetch calls on transient errors.
        retry_min_wait (float): Minimum wait between those attempts.
        retry_max_wait (float): Maximum wait between those attempts.
        max_records_per_batch (int): Records per container when chunking input.
        request_timeout (float): Per-request HTTP timeout.
    """
    api_version: str = "59.0"
    poll_interval: float = 1.0
    backoff_factor: float = 2.0
    max_poll_interval: Optional[float] = 60.0
    settle_delay: float = 4.0
    max_poll_failures: int = 5
    retry_attempts: int = 3
    retry_min_wait: float = 2.0
    retry_max_wait: float = 60.0
    max_records_per_batch: int = 10_000
    request_timeout: float = 120.0

    def __post_init__(self):
        self._check_arguments()

    def _check_arguments(self):
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive.")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1.")
        if self.max_poll_interval is not None and self.max_poll_interval < self.poll_interval:
            raise ValueError("max_poll_interval must be >= poll_interval.")
        if self.settle_delay < 0:
            raise ValueError("settle_delay cannot be negative.")
        if self.max_poll_failures < 1:
            raise ValueError("max_poll_failures must be >= 1.")
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1.")
        if self.retry_min_wait < 0 or self.retry_max_wait < self.retry_min_wait:
            raise ValueError("retry waits must satisfy 0 <= retry_min_wait <= retry_max_wait.")
        if not 0 < self.max_records_per_batch <= 10_000:
            raise ValueError("max_records_per_batch must be between 1 and 10000.")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive.")
        if self.max_poll_interval is None:
            logging.warning("Polling backoff is uncapped; slow batches may be polled very rarely.")

    @classmethod
    def _field_types(cls):
        return {f.name: f.type for f in dataclasses.fields(cls)}

    @classmethod
    def from_dict(cls, data: dict) -> "BulkSettings":
        """Build settings from a mapping, rejecting unknown keys."""
        unknown = set(data) - set(cls._field_types())
        if unknown:
            raise ValueError(f"Unknown settings: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path) -> "BulkSettings":
        """
        Load settings from a YAML file. The file may hold the settings at the
        top level or under a ``bulk`` key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Settings file not found: {path}")
        data = read_yaml(path) or {}
        if "bulk" in data and isinstance(data["bulk"], dict):
            data = data["bulk"]
        logging.debug(f"Loaded bulk settings from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ=None) -> "BulkSettings":
        """Build settings from FORCE_BULK_* environment variables."""
        environ = os.environ if environ is None else environ
        data = {}
        for name in cls._field_types():
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            default = getattr(cls, name)
            if name == "api_version":
                data[name] = raw
            elif name == "max_poll_interval" and raw.lower() in ("none", "off"):
                data[name] = None
            elif isinstance(default, int) and not isinstance(default, bool):
                data[name] = int(raw)
            else:
                data[name] = float(raw)
        return cls(**data)

    def to_yaml(self, path):
        write_yaml({"bulk": dataclasses.asdict(self)}, path)
