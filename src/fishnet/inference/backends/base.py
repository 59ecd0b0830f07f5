from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from fishnet.inference.models.model_spec import ModelSpec


class ModelHandle(ABC):
    @abstractmethod
    def load(self, model_spec: ModelSpec) -> None:
        """Load model artifacts and initialize the runtime."""

    @abstractmethod
    def predict(self, inputs: np.ndarray) -> Any:
        """Run one forward pass.

        Returns a single tensor, a positional list of tensors, or a mapping of
        output name to tensor; callers normalize the shape themselves.
        """

    @abstractmethod
    def name(self) -> str:
        """Return stable backend name for logging and metrics."""

    @abstractmethod
    def device_info(self) -> str:
        """Return selected device/accelerator detail string."""

    def release(self) -> None:
        """Drop runtime resources. Safe to call more than once."""
        return None
