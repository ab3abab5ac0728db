"""
Checkpoint store.

Owns the mutable checkpoint set. Mutations take a short lock; readers get an immutable
copy (`snapshot()`) and iterate it without holding anything, so trigger evaluation and
`add`/`remove` never block each other beyond the copy itself.
"""

from __future__ import annotations

import logging
import re
import threading
import uuid
from typing import Iterable

from travelalarm.domain.models import Checkpoint
from travelalarm.errors import DuplicateIdError

logger = logging.getLogger(__name__)

_GENERATED_ID = re.compile(r"^cp-(\d+)-")


class CheckpointStore:
    """Creation-ordered, id-unique checkpoint collection (thread-safe)."""

    def __init__(self, checkpoints: Iterable[Checkpoint] = ()):
        self._lock = threading.Lock()
        # dicts keep insertion order, which is the creation order evaluation relies on.
        self._items: dict[str, Checkpoint] = {}
        self._last_seq = 0
        for cp in checkpoints:
            self.add(cp)

    def new_id(self) -> str:
        """Return a fresh opaque id.

        The numeric part is larger than that of any generated id already stored (including
        ones loaded from disk). Compare it as a number: past 9999 it outgrows its padding.
        """
        with self._lock:
            self._last_seq += 1
            seq = self._last_seq
        return f"cp-{seq:04d}-{uuid.uuid4().hex[:8]}"

    def add(self, checkpoint: Checkpoint) -> None:
        with self._lock:
            if checkpoint.id in self._items:
                raise DuplicateIdError(checkpoint.id)
            self._items[checkpoint.id] = checkpoint
            match = _GENERATED_ID.match(checkpoint.id)
            if match:
                self._last_seq = max(self._last_seq, int(match.group(1)))

    def remove(self, checkpoint_id: str) -> bool:
        """Delete `checkpoint_id`; returns False (no error) when it is absent."""
        with self._lock:
            removed = self._items.pop(checkpoint_id, None)
        if removed is None:
            logger.debug("Remove of unknown checkpoint %s ignored.", checkpoint_id)
            return False
        return True

    def snapshot(self) -> tuple[Checkpoint, ...]:
        with self._lock:
            return tuple(self._items.values())

    def contains(self, checkpoint_id: str) -> bool:
        with self._lock:
            return checkpoint_id in self._items

    def get(self, checkpoint_id: str) -> Checkpoint | None:
        with self._lock:
            return self._items.get(checkpoint_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, checkpoint_id: object) -> bool:
        return isinstance(checkpoint_id, str) and self.contains(checkpoint_id)
