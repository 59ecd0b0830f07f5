from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np

from fishnet.inference.errors import ShapeMismatch


class OutputKind(str, Enum):
    SINGLE = "single"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


@dataclass(frozen=True)
class DecodedOutputs:
    kind: OutputKind
    tensors: list[np.ndarray]
    names: list[str]

    def __len__(self) -> int:
        return len(self.tensors)

    def head(self, index: int, purpose: str) -> np.ndarray:
        if index >= len(self.tensors):
            raise ShapeMismatch(
                f"{purpose} needs output #{index} but the model returned {len(self.tensors)} ({self.kind.value})"
            )
        return self.tensors[index]


def _as_array(tensor: Any) -> np.ndarray:
    if hasattr(tensor, "numpy") and callable(tensor.numpy):
        tensor = tensor.numpy()
    return np.asarray(tensor, dtype=np.float32)


def output_kind(raw: Any) -> OutputKind:
    if isinstance(raw, Mapping):
        return OutputKind.MAPPING
    if isinstance(raw, (list, tuple)):
        return OutputKind.SEQUENCE
    return OutputKind.SINGLE


def decode_outputs(raw: Any, output_order: list[str] | None = None) -> DecodedOutputs:
    """Normalize any model return shape into one ordered list of arrays.

    Mappings follow ``output_order`` when given; names missing from the order
    keep their mapping order after the ordered ones.
    """
    if raw is None:
        raise ShapeMismatch("model returned no outputs")

    kind = output_kind(raw)
    if kind is OutputKind.SINGLE:
        return DecodedOutputs(kind=kind, tensors=[_as_array(raw)], names=["output_0"])

    if kind is OutputKind.SEQUENCE:
        items = [item for item in raw if item is not None]
        if not items:
            raise ShapeMismatch("model returned an empty output list")
        return DecodedOutputs(
            kind=kind,
            tensors=[_as_array(item) for item in items],
            names=[f"output_{idx}" for idx in range(len(items))],
        )

    names = [str(name) for name in raw.keys()]
    if not names:
        raise ShapeMismatch("model returned an empty output mapping")
    if output_order:
        missing = [name for name in output_order if name not in raw]
        if missing:
            raise ShapeMismatch(f"model outputs {names} lack configured names {missing}")
        names = list(output_order) + [name for name in names if name not in output_order]
    return DecodedOutputs(
        kind=kind,
        tensors=[_as_array(raw[name]) for name in names],
        names=names,
    )
