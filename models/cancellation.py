from __future__ import annotations
import threading

from models.errors import OperationCancelled


class CancellationToken:
    """
    Cooperative cancellation flag for the suspending stages
    (secondary compression pass and bulk upload).
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self.reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise OperationCancelled(f"{stage} cancelled: {self.reason}")
