from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

import numpy as np

T = TypeVar("T")

_logger = logging.getLogger("fishnet.tensors")


def to_host(tensor: Any) -> np.ndarray:
    """Materialize a tensor as an owned, contiguous float32 host array.

    Stages hand buffers to models only through this copy so no stage depends on
    the lifetime of a tensor produced by another runtime.
    """
    if hasattr(tensor, "numpy") and callable(tensor.numpy):
        tensor = tensor.numpy()
    return np.ascontiguousarray(np.array(tensor, dtype=np.float32, copy=True))


def _release_one(item: Any) -> None:
    if isinstance(item, Mapping):
        for value in item.values():
            _release_one(value)
        return
    if isinstance(item, (list, tuple)):
        for value in item:
            _release_one(value)
        return
    for method in ("dispose", "release"):
        fn = getattr(item, method, None)
        if callable(fn):
            fn()
            return


class TensorArena:
    """Tracks transient tensors of one stage and releases them on every exit path.

    Usage::

        with TensorArena("detector") as arena:
            batch = arena.track(prepare(frame))
            raw = arena.track(handle.predict(batch))
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._items: list[Any] = []
        self.released = 0

    def track(self, tensor: T) -> T:
        self._items.append(tensor)
        return tensor

    @property
    def live(self) -> int:
        return len(self._items)

    def release_all(self) -> int:
        count = 0
        errors = 0
        while self._items:
            item = self._items.pop()
            try:
                _release_one(item)
            except Exception as exc:
                errors += 1
                _logger.warning("arena=%s failed to release tensor: %s", self._name, exc)
            count += 1
        self.released += count
        if count:
            _logger.debug("arena=%s released=%d errors=%d", self._name, count, errors)
        return count

    def __enter__(self) -> "TensorArena":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release_all()
        return False
