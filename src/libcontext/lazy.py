"""Load-once holder for expensive model handles."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class LazyHandle(Generic[T]):
    """Call *loader* on first ``get()`` and cache the result.

    Concurrent first calls block on one lock, so the loader runs exactly
    once. If the loader raises, nothing is cached and a later ``get()``
    tries again.
    """

    def __init__(self, loader: Callable[[], T]) -> None:
        self._loader = loader
        self._lock = threading.Lock()
        self._value: T | None = None

    @property
    def loaded(self) -> bool:
        return self._value is not None

    def get(self) -> T:
        value = self._value
        if value is None:
            with self._lock:
                if self._value is None:
                    self._value = self._loader()
                value = self._value
        return value
