from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from typing import Optional

from .errors import ExecutionCancelled
from .store import ResultStore


@dataclass(frozen=True)
class ExecutionContext:
    """Per-call state threaded from tasks down to parameter resolution.

    Derived contexts share the cancellation event of their parent, so
    cancelling a task context also stops every action running under it.
    """

    store: Optional[ResultStore] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    deadline: Optional[float] = None
    task_id: Optional[str] = None

    @classmethod
    def with_timeout(cls, seconds: Optional[float], *, store: Optional[ResultStore] = None) -> "ExecutionContext":
        deadline = time.monotonic() + seconds if seconds is not None else None
        return cls(store=store, deadline=deadline)

    def with_store(self, store: Optional[ResultStore]) -> "ExecutionContext":
        return replace(self, store=store)

    def child(self, *, task_id: Optional[str] = None, timeout: Optional[float] = None) -> "ExecutionContext":
        deadline = self.deadline
        if timeout is not None:
            candidate = time.monotonic() + timeout
            deadline = candidate if deadline is None else min(deadline, candidate)
        return replace(self, deadline=deadline, task_id=task_id if task_id is not None else self.task_id)

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def reason(self) -> Optional[str]:
        if self.cancelled:
            return "cancelled"
        if self.expired:
            return "deadline exceeded"
        return None

    def check(self) -> None:
        """Raise :class:`ExecutionCancelled` if the context is done."""

        reason = self.reason()
        if reason is not None:
            raise ExecutionCancelled(reason)

    def wait(self, seconds: float) -> None:
        """Sleep for ``seconds`` but wake early on cancellation or deadline."""

        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        if self.cancel_event.wait(timeout):
            raise ExecutionCancelled("cancelled")
        if remaining is not None and remaining <= seconds:
            raise ExecutionCancelled("deadline exceeded")
