# -*- coding: utf-8 -*-

"""
Exception hierarchy for bulk job orchestration.

Every error raised by the package derives from BulkError so callers can catch
the whole family at once, or single out the kinds that need different handling:

    InvalidStateError     - operation not permitted in the current job/batch state
    RemoteRejectedError   - remote side refused the request (business logic)
    TransientError        - transport failure, worth retrying later
      RequestNotSentError - connection never established, safe to resend anything
    ResultAlignmentError  - per-record results do not line up with the submission
    OrchestrationCancelled / DeadlineExceeded - run stopped before completion
    BulkRunError          - aggregate of per-batch failures of a run
"""


class BulkError(Exception):
    """Base class for all bulk API errors."""


class InvalidStateError(BulkError):
    """Raised when a job or batch is not in a state that permits the operation."""


class RemoteRejectedError(BulkError):
    """Raised when the remote side refuses a request for business reasons."""

    def __init__(self, message, exception_code=None, status_code=None):
        super().__init__(message)
        self.message = message
        self.exception_code = exception_code
        self.status_code = status_code

    def __str__(self):
        if self.exception_code:
            return f"{self.exception_code}: {self.message}"
        return self.message


class TransientError(BulkError):
    """Raised on timeouts, dropped connections and remote 5xx/429 responses."""


class RequestNotSentError(TransientError):
    """
    Raised when a request failed before reaching the remote side (connection
    refused, connect or pool timeout). Unlike other transient errors, resending
    cannot duplicate work, so non-idempotent calls may be retried on it.
    """


class ResultAlignmentError(BulkError):
    """Raised when batch results cannot be aligned with the submitted records."""


class OrchestrationCancelled(BulkError):
    """Raised (or reported) when a run is cancelled by the caller."""


class DeadlineExceeded(OrchestrationCancelled):
    """Raised (or reported) when a run exceeds its time budget."""


class BulkRunError(BulkError):
    """
    Aggregate error for a run where one or more batches failed.

    Attributes:
        result: The partial BulkRunResult, with every result set that was
            collected successfully.
        failures: List of BatchFailure entries (index, batch, error).
    """

    def __init__(self, result):
        self.result = result
        self.failures = list(result.failures)
        indices = ", ".join(str(f.index) for f in self.failures)
        message = f"{len(self.failures)} batch(es) failed at indices [{indices}]"
        if result.interruption is not None:
            message += f"; run interrupted: {result.interruption}"
        super().__init__(message)

    @property
    def failed_indices(self):
        return [f.index for f in self.failures]
