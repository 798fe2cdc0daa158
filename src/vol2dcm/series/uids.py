"""UID allocation for series and instances."""

from __future__ import annotations

import itertools
import secrets
import threading
import time

from pydicom.uid import PYDICOM_ROOT_UID, UID

from vol2dcm.core.errors import AllocationError

# Shared by every allocator in the process so two runs never hand out the
# same (timestamp, counter) pair.
_counter = itertools.count(1)
_counter_lock = threading.Lock()


def _next_count() -> int:
    with _counter_lock:
        return next(_counter)


class UIDAllocator:
    """Thread-safe generator of globally unique DICOM UIDs.

    UIDs take the form ``<root><unix-ms>.<counter>.<random>``. The counter is
    monotonic within the process; the random part separates processes that
    start within the same millisecond.
    """

    def __init__(self, root: str = PYDICOM_ROOT_UID):
        if not root.endswith("."):
            root += "."
        if not UID(root + "1").is_valid:
            raise AllocationError(f"Invalid UID root: {root}")
        self.root = root

    def _generate(self) -> str:
        uid = f"{self.root}{time.time_ns() // 1_000_000}.{_next_count()}.{secrets.randbelow(1_000_000)}"
        if not UID(uid).is_valid:
            raise AllocationError(f"Generated UID is not valid: {uid}")
        return uid

    def new_series_uid(self) -> str:
        return self._generate()

    def new_instance_uid(self) -> str:
        return self._generate()

    def new_study_uid(self) -> str:
        return self._generate()

    def new_frame_of_reference_uid(self) -> str:
        return self._generate()


class SequenceAllocator(UIDAllocator):
    """Deterministic allocator: ``<root>1``, ``<root>2``, ...

    Intended for tests that need reproducible identifiers.
    """

    def __init__(self, root: str = "1.2.3."):
        super().__init__(root)
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def _generate(self) -> str:
        with self._lock:
            return f"{self.root}{next(self._seq)}"
