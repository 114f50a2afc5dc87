"""Error taxonomy for billing and settlement operations.

Every error raised by the core derives from ``BillingError`` and carries a
stable ``code`` that callers translate into user-facing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class BillingError(Exception):
    """Base class for all billing engine errors."""

    code = "BILLING_ERROR"


class ValidationError(BillingError):
    """Raised for malformed input (missing client, inverted period, bad amounts)."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ConflictError(BillingError):
    """Raised when an operation is illegal in the current state."""

    code = "CONFLICT"


class NotFoundError(BillingError):
    """Raised when a referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


@dataclass
class BatchItemFailure:
    """One failed item of a batch operation."""

    item_id: Any
    error_code: str
    message: str


class PartialBatchFailure(BillingError):
    """Raised when a caller asks a batch result to fail on any item error."""

    code = "PARTIAL_BATCH_FAILURE"

    def __init__(self, failures: list[BatchItemFailure], succeeded: int):
        self.failures = failures
        self.succeeded = succeeded
        super().__init__(
            f"{len(failures)} item(s) failed, {succeeded} succeeded"
        )
