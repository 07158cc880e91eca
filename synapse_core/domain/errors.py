"""
Exception hierarchy for the dosing and recovery engine.

Expected business rejections travel inside a Result; store failures are raised.
"""


class SynapseError(Exception):
    """Base class for all engine errors."""


class StoreError(SynapseError):
    """A persistence operation failed. Never retried by the core."""


class RecordNotFoundError(StoreError):
    """The requested record does not exist in the store."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} {record_id!r} not found")
        self.kind = kind
        self.record_id = record_id


class DoseSlotError(SynapseError):
    """A dose slot referenced a medication or index that is not schedulable."""


class SickModeStateError(SynapseError):
    """An operation is not allowed in the current sick mode phase."""
