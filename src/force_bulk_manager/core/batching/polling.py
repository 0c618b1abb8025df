# -*- coding: utf-8 -*-
"""
Batch polling with capped exponential backoff.

Each batch is driven by its own loop (one asyncio task per batch in the
manager), so every batch keeps an independent backoff timer and a slow batch
never delays the detection of a fast one.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from ..utils.errors import TransientError
from .models import Batch


@dataclass(frozen=True)
class BackoffSchedule:
    """
    Wait intervals between polls: initial, initial*factor, initial*factor**2,
    ... never exceeding max_interval (when set).
    """
    initial: float = 1.0
    factor: float = 2.0
    max_interval: Optional[float] = 60.0

    def __post_init__(self):
        if self.initial <= 0:
            raise ValueError("initial interval must be positive.")
        if self.factor < 1:
            raise ValueError("factor must be >= 1.")
        if self.max_interval is not None and self.max_interval < self.initial:
            raise ValueError("max_interval must be >= initial.")

    def next_interval(self, current: float) -> float:
        interval = current * self.factor
        if self.max_interval is not None:
            interval = min(interval, self.max_interval)
        return interval

    def intervals(self) -> Iterator[float]:
        interval = self.initial
        while True:
            yield interval
            interval = self.next_interval(interval)


class BatchPoller:
    """
    Polls batches until they reach a terminal state.

    Args:
        client: Bulk API client.
        schedule (BackoffSchedule): Wait intervals between polls.
        settle_delay (float): Seconds to wait once after a batch turns terminal,
            so its results are available when fetched.
        max_poll_failures (int): Consecutive transient failures tolerated
            before giving up on a batch.
        sleep: Coroutine function used to wait; asyncio.sleep by default.
    """

    def __init__(
        self,
        client,
        schedule: Optional[BackoffSchedule] = None,
        settle_delay: float = 4.0,
        max_poll_failures: int = 5,
        sleep=asyncio.sleep,
    ):
        if settle_delay < 0:
            raise ValueError("settle_delay cannot be negative.")
        if max_poll_failures < 1:
            raise ValueError("max_poll_failures must be >= 1.")
        self.client = client
        self.schedule = schedule or BackoffSchedule()
        self.settle_delay = settle_delay
        self.max_poll_failures = max_poll_failures
        self._sleep = sleep

    @classmethod
    def from_settings(cls, client, settings, sleep=asyncio.sleep):
        return cls(
            client,
            schedule=BackoffSchedule(
                initial=settings.poll_interval,
                factor=settings.backoff_factor,
                max_interval=settings.max_poll_interval,
            ),
            settle_delay=settings.settle_delay,
            max_poll_failures=settings.max_poll_failures,
            sleep=sleep,
        )

    async def poll_batch(self, batch: Batch) -> Batch:
        """
        Query the current state of a batch once.

        A batch that is already terminal is returned as-is, without any
        remote call.

        Raises:
            TransientError: On transport failure; not retried here.
        """
        if batch.is_terminal:
            return batch
        refreshed = await self.client.get_batch(batch.job_id, batch.id, record_count=batch.record_count)
        if refreshed.state != batch.state:
            logging.info(f"Batch {batch.id}: {batch.state.value} -> {refreshed.state.value}")
        if refreshed.state_message and refreshed.state.is_terminal:
            logging.info(f"Batch {batch.id} state message: {refreshed.state_message}")
        return refreshed

    async def wait_until_terminal(self, batch: Batch, on_poll=None) -> Batch:
        """
        Poll a batch on the backoff schedule until it is terminal, then wait
        the settle delay once.

        Transient failures are re-polled on the next tick; the error is
        raised once max_poll_failures consecutive polls have failed.

        Args:
            batch (Batch): The batch to drive.
            on_poll (callable): Called with every successfully polled Batch,
                so callers keep the latest known state if polling gives up.

        Returns:
            Batch: The batch in its terminal state.
        """
        intervals = self.schedule.intervals()
        failures = 0
        while True:
            try:
                batch = await self.poll_batch(batch)
                failures = 0
                if on_poll is not None:
                    on_poll(batch)
            except TransientError as e:
                failures += 1
                if failures >= self.max_poll_failures:
                    logging.error(f"Giving up on batch {batch.id} after {failures} failed status checks: {e}")
                    raise
                logging.warning(f"Status check for batch {batch.id} failed ({failures}/{self.max_poll_failures}): {e}")

            if batch.is_terminal:
                if self.settle_delay:
                    logging.debug(f"Batch {batch.id} is {batch.state.value}; settling for {self.settle_delay}s")
                    await self._sleep(self.settle_delay)
                return batch

            interval = next(intervals)
            logging.debug(f"Batch {batch.id} is {batch.state.value}; next check in {interval:.2f}s")
            await self._sleep(interval)
