"""
Concurrency Helpers
===================
- CancellationToken: cooperative cancellation checked between pages and
  between extraction stages
- PaperLockRegistry: per-paper exclusion for the delete-then-insert replace.
  Locks are created on first use and dropped when the last holder leaves.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from .errors import ExtractionCancelled, ExtractionInProgressError


class CancellationToken:
    """Thread-safe cancel flag shared between a job scheduler and the engine"""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._event.is_set():
            msg = f"Extraction cancelled ({self.reason})"
            if where:
                msg += f" at {where}"
            raise ExtractionCancelled(msg, {"where": where} if where else None)


@dataclass
class _LockEntry:
    lock: threading.Lock
    holders: int = 0


class PaperLockRegistry:
    """
    Map paper_id -> lock, injected into the orchestrator.

    Policies:
        queue: wait until the running extraction for the paper finishes
        reject: raise ExtractionInProgressError immediately
    """

    POLICIES = ("queue", "reject")

    def __init__(self, policy: str = "queue", timeout: Optional[float] = None):
        if policy not in self.POLICIES:
            raise ValueError(f"Unknown lock policy: {policy}")
        self.policy = policy
        self.timeout = timeout
        self._guard = threading.Lock()
        self._entries: Dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, paper_id: str) -> Iterator[None]:
        entry = self._checkout(paper_id)
        try:
            if self.policy == "reject":
                acquired = entry.lock.acquire(blocking=False)
            elif self.timeout is not None:
                acquired = entry.lock.acquire(timeout=self.timeout)
            else:
                acquired = entry.lock.acquire()
            if not acquired:
                raise ExtractionInProgressError(paper_id)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(paper_id)

    def is_locked(self, paper_id: str) -> bool:
        with self._guard:
            entry = self._entries.get(paper_id)
            return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, paper_id: str) -> _LockEntry:
        with self._guard:
            entry = self._entries.get(paper_id)
            if entry is None:
                entry = _LockEntry(lock=threading.Lock())
                self._entries[paper_id] = entry
            entry.holders += 1
            return entry

    def _checkin(self, paper_id: str) -> None:
        with self._guard:
            entry = self._entries.get(paper_id)
            if entry is None:
                return
            entry.holders -= 1
            if entry.holders <= 0:
                del self._entries[paper_id]
