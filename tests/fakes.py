from __future__ import annotations

import threading
from typing import Any, Callable

import numpy as np

from fishnet.config.models import RuntimeConfig
from fishnet.inference.backends.base import ModelHandle
from fishnet.inference.labels import DISEASE_LABELS, SPECIES_LABELS
from fishnet.inference.models.model_spec import ModelSpec
from fishnet.inference.provider import ModelProvider


class FakeTensor:
    """Array wrapper that records ``dispose`` calls like a runtime-owned buffer."""

    live: set[int] = set()
    _lock = threading.Lock()

    def __init__(self, values: Any) -> None:
        self._values = np.asarray(values, dtype=np.float32)
        self.disposed = False
        with FakeTensor._lock:
            FakeTensor.live.add(id(self))

    def numpy(self) -> np.ndarray:
        return self._values

    def __array__(self, dtype=None, copy=None):
        return self._values if dtype is None else self._values.astype(dtype)

    def dispose(self) -> None:
        self.disposed = True
        with FakeTensor._lock:
            FakeTensor.live.discard(id(self))

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls.live.clear()


class FakeHandle(ModelHandle):
    def __init__(self, outputs: Any = None, *, error: Exception | None = None, fn: Callable | None = None) -> None:
        self._outputs = outputs
        self._error = error
        self._fn = fn
        self.calls: list[np.ndarray] = []
        self.released = False

    def load(self, model_spec: ModelSpec) -> None:
        return None

    def predict(self, inputs: np.ndarray) -> Any:
        self.calls.append(np.array(inputs, copy=True))
        if self._error is not None:
            raise self._error
        if self._fn is not None:
            return self._fn(inputs)
        return self._outputs

    def name(self) -> str:
        return "fake"

    def device_info(self) -> str:
        return "cpu"

    def release(self) -> None:
        self.released = True


def detector_grid(
    cx: float,
    cy: float,
    w: float,
    h: float,
    score: float = 0.9,
    anchors: int = 2100,
    num_classes: int = 7,
    transposed: bool = False,
) -> np.ndarray:
    grid = np.zeros((anchors, 4 + num_classes), dtype=np.float32)
    grid[0, :4] = [cx, cy, w, h]
    grid[0, 4] = score
    if transposed:
        return grid.T[None, ...]
    return grid[None, ...]


def species_scores(**scores: float) -> np.ndarray:
    vector = np.zeros(len(SPECIES_LABELS), dtype=np.float32)
    for label, value in scores.items():
        vector[SPECIES_LABELS.index(label)] = value
    return vector[None, ...]


def disease_scores(black_gill: float, healthy: float, white_spot: float) -> np.ndarray:
    vector = np.zeros(len(DISEASE_LABELS), dtype=np.float32)
    vector[DISEASE_LABELS.index("black_gill_disease")] = black_gill
    vector[DISEASE_LABELS.index("healthy")] = healthy
    vector[DISEASE_LABELS.index("white_spot_virus")] = white_spot
    return vector[None, ...]


def ready_provider(handles: dict[str, ModelHandle]) -> ModelProvider:
    specs = {role: ModelSpec(role=role, model_path=f"{role}.tflite") for role in handles}
    provider = ModelProvider(specs, loader=lambda spec: handles[spec.role])
    provider.load()
    return provider


def make_config(**overrides: Any) -> RuntimeConfig:
    config = RuntimeConfig()
    config.seed = 7
    for key, value in overrides.items():
        setattr(config, key, value)
    return config
