"""Per-chapter scratch space for in-flight drafting state.

A store belongs to one job execution (it hangs off the job context, never a
module global). Each chapter's drafting phase opens its own handle; values are
appended under keys and the whole slot is discarded on close.
"""

import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from loguru import logger

from ..errors import AccumulatorClosed


@dataclass(frozen=True)
class AccumulatorHandle:
    job_id: str
    chapter_id: str
    token: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class _Slot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    values: dict[str, list[Any]] = field(default_factory=dict)


class AccumulatorStore:
    def __init__(self, job_id: str):
        self.job_id = job_id
        self._slots: dict[AccumulatorHandle, _Slot] = {}
        self._registry_lock = threading.Lock()
        self.opened = 0
        self.closed = 0

    def open(self, chapter_id: str) -> AccumulatorHandle:
        handle = AccumulatorHandle(job_id=self.job_id, chapter_id=chapter_id)
        with self._registry_lock:
            self._slots[handle] = _Slot()
            self.opened += 1
        return handle

    def _slot(self, handle: AccumulatorHandle) -> _Slot:
        if handle.job_id != self.job_id:
            raise AccumulatorClosed(
                f"Handle for job {handle.job_id} used on store of job {self.job_id}"
            )
        with self._registry_lock:
            slot = self._slots.get(handle)
        if slot is None:
            raise AccumulatorClosed(f"Accumulator for chapter {handle.chapter_id} is closed")
        return slot

    def append(self, handle: AccumulatorHandle, key: str, value: Any) -> None:
        slot = self._slot(handle)
        with slot.lock:
            slot.values.setdefault(key, []).append(value)

    def read(self, handle: AccumulatorHandle, key: str) -> Optional[list[Any]]:
        """Return a copy of everything appended under ``key``, or None if absent."""
        slot = self._slot(handle)
        with slot.lock:
            values = slot.values.get(key)
            return list(values) if values is not None else None

    def close(self, handle: AccumulatorHandle) -> None:
        with self._registry_lock:
            if self._slots.pop(handle, None) is not None:
                self.closed += 1

    def is_open(self, handle: AccumulatorHandle) -> bool:
        with self._registry_lock:
            return handle in self._slots

    @property
    def open_handles(self) -> int:
        with self._registry_lock:
            return len(self._slots)

    @contextmanager
    def session(self, chapter_id: str) -> Iterator[AccumulatorHandle]:
        """Open a handle that is closed on every exit path."""
        handle = self.open(chapter_id)
        try:
            yield handle
        finally:
            self.close(handle)
            logger.debug(f"Accumulator closed for chapter {chapter_id}")
