"""
Error kinds raised by the labeling engine and its persistence bridge.
"""
from typing import Any


class LabelingError(Exception):
    """Base class for all labeling errors."""


class InvalidLabelType(LabelingError):
    """A label referenced a type id that is not in the project's registry."""

    def __init__(self, label_type_id: Any) -> None:
        self.label_type_id = label_type_id
        super().__init__(f"Unknown label type: {label_type_id!r}")


class ValidationError(LabelingError):
    """A label-type create/update (or a query) broke a field constraint."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field} {reason}")

    def to_dict(self) -> dict:
        return {"field": self.field, "reason": self.reason}


class OffsetOutOfRange(LabelingError):
    """A span fell outside [0, len(text)] or was empty/inverted."""

    def __init__(self, start: int, end: int, length: int) -> None:
        self.start = start
        self.end = end
        self.length = length
        super().__init__(f"Span [{start},{end}) out of range for text of length {length}")


class StaleResponse(LabelingError):
    """A backend result arrived for a document that is no longer active."""

    def __init__(self, file_id: int, operation: str) -> None:
        self.file_id = file_id
        self.operation = operation
        super().__init__(f"Discarding stale '{operation}' response for file {file_id}")


class PersistenceError(LabelingError):
    """The backend failed to perform an operation."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class RecordNotFound(PersistenceError):
    """The backend has no record with the requested id."""

    def __init__(self, kind: str, record_id: Any) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"load_{kind}", f"{kind} {record_id!r} not found")


class UnsupportedFileType(LabelingError):
    """An upload was rejected at the file boundary."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unsupported file type: {name!r}")
