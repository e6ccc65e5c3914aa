"""Per-operation state passed explicitly into engine calls.

Request ids, cancellation and in-flight guards live on these objects, never
in module or view globals.
"""
import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from gearshare.errors import ConflictError, OperationCancelled


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True

    def raise_if_cancelled(self, operation="operation"):
        if self._cancelled:
            raise OperationCancelled(f"The {operation} was cancelled.")


@dataclass
class OperationContext:
    request_id: int = 0
    token: CancellationToken = field(default_factory=CancellationToken)
    actor_id: Optional[int] = None

    def check(self, operation="operation"):
        self.token.raise_if_cancelled(operation)


class RequestSequencer:
    """Tags overlapping requests and keeps only the latest one's result.

    A response for an older request id is dropped on arrival, so a late
    success can never overwrite the fail-closed result of a newer request.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest = 0
        self._lock = threading.Lock()
        self.result: Any = None

    @property
    def latest_id(self) -> int:
        return self._latest

    def issue(self, actor_id=None) -> OperationContext:
        with self._lock:
            self._latest = next(self._counter)
            return OperationContext(request_id=self._latest, actor_id=actor_id)

    def is_current(self, context: OperationContext) -> bool:
        return context.request_id == self._latest

    def accept(self, context: OperationContext, result) -> bool:
        with self._lock:
            if context.request_id != self._latest or context.token.cancelled:
                return False
            self.result = result
            return True


class InitializationGuard:
    """Prevents a second payment initialization while one is in flight.

    Re-opens on error so the caller can retry; stays closed once the
    initialization is confirmed.
    """

    def __init__(self):
        self.in_flight = False
        self.completed = False

    def acquire(self):
        if self.completed:
            raise ConflictError("Payment has already been initialized.")
        if self.in_flight:
            raise ConflictError("Payment initialization already in progress.")
        self.in_flight = True

    def fail(self):
        self.in_flight = False

    def succeed(self):
        self.in_flight = False
        self.completed = True
