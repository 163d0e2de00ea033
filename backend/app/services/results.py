from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from app.core.exceptions import ErrorKind, WorkflowError

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    value: T | None = None
    error: WorkflowError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: WorkflowError) -> "OperationResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


@dataclass
class FailedItem:
    item: Any
    reason: ErrorKind
    message: str | None = None


@dataclass
class BatchManifest:
    """Outcome of a batch operation; per-item failures never abort the batch."""

    succeeded: list[Any] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)
    cancelled: bool = False
    dry_run: bool = False

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def record_success(self, item: Any) -> None:
        self.succeeded.append(item)

    def record_failure(self, item: Any, reason: ErrorKind, message: str | None = None) -> None:
        self.failed.append(FailedItem(item=item, reason=reason, message=message))
