# -*- coding: utf-8 -*-

"""
Data model for bulk jobs, batches and per-record outcomes.

Job and Batch are immutable snapshots of remote state: every refresh (close,
poll) returns a new value instead of mutating the old one.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

from ..utils.errors import BulkRunError


class OperationType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    UPSERT = "upsert"
    DELETE = "delete"


class JobState(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    ABORTED = "Aborted"


class BatchState(str, Enum):
    QUEUED = "Queued"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    NOT_PROCESSED = "Not Processed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_BATCH_STATES


TERMINAL_BATCH_STATES = frozenset({
    BatchState.COMPLETED,
    BatchState.FAILED,
    BatchState.NOT_PROCESSED,
})


@dataclass(frozen=True)
class Job:
    """A server-side job grouping batches of one object type and operation."""
    id: str
    object_type: str
    operation: OperationType
    state: JobState = JobState.OPEN
    external_id_field: Optional[str] = None
    content_type: str = "XML"
    api_version: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state == JobState.OPEN

    def with_state(self, state: JobState) -> "Job":
        return replace(self, state=JobState(state))


@dataclass(frozen=True)
class Batch:
    """One submitted chunk of records, processed as a unit by the remote side."""
    id: str
    job_id: str
    state: BatchState
    record_count: int
    state_message: Optional[str] = None
    records_processed: int = 0
    records_failed: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


@dataclass(frozen=True)
class RecordResult:
    """Outcome of the operation for a single submitted record."""
    id: Optional[str]
    success: bool
    created: bool
    error_message: Optional[str] = None
    status_code: Optional[str] = None
    fields: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.success and self.error_message is not None:
            raise ValueError("Successful record results cannot carry an error message.")
        if not self.success and not self.error_message:
            raise ValueError("Failed record results must carry an error message.")


@dataclass(frozen=True)
class ResultSet:
    """
    Ordered per-record outcomes of one batch.

    Position i holds the outcome of the i-th record of the submitted container.
    """
    batch_id: str
    records: Tuple[RecordResult, ...] = ()

    def __len__(self):
        return len(self.records)

    def __getitem__(self, index):
        return self.records[index]

    def __iter__(self):
        return iter(self.records)

    @property
    def succeeded(self) -> List[RecordResult]:
        return [r for r in self.records if r.success]

    @property
    def failed(self) -> List[RecordResult]:
        return [r for r in self.records if not r.success]

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.records)


@dataclass(frozen=True)
class BatchFailure:
    """A batch whose polling or result collection did not succeed."""
    index: int
    batch: Optional[Batch]
    error: BaseException


@dataclass
class BulkRunResult:
    """
    Aggregate outcome of a full run: one slot per submitted batch, in
    submission order.

    Attributes:
        job: The job as last seen (normally Closed).
        batches: Latest known Batch per submission index.
        result_sets: ResultSet per submission index, None where collection
            failed or was interrupted.
        failures: Batches that failed, each with the error that stopped them.
        interruption: OrchestrationCancelled or DeadlineExceeded if the run
            was stopped before every batch was collected.
    """
    job: Job
    batches: List[Batch]
    result_sets: List[Optional[ResultSet]] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)
    interruption: Optional[BaseException] = None

    def __post_init__(self):
        if not self.result_sets:
            self.result_sets = [None] * len(self.batches)

    def __len__(self):
        return len(self.result_sets)

    def __getitem__(self, index):
        return self.result_sets[index]

    @property
    def ok(self) -> bool:
        return (
            self.interruption is None
            and not self.failures
            and all(rs is not None for rs in self.result_sets)
        )

    @property
    def collected_indices(self) -> List[int]:
        return [i for i, rs in enumerate(self.result_sets) if rs is not None]

    @property
    def failed_indices(self) -> List[int]:
        return sorted(f.index for f in self.failures)

    @property
    def pending_indices(self) -> List[int]:
        failed = set(self.failed_indices)
        return [
            i for i, rs in enumerate(self.result_sets)
            if rs is None and i not in failed
        ]

    def raise_for_failures(self):
        """Raise BulkRunError if any batch failed or the run was interrupted."""
        if self.failures or self.interruption is not None:
            raise BulkRunError(self)
        return self
