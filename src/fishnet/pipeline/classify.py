from __future__ import annotations

import logging
from typing import Any

import numpy as np

from fishnet.inference.backends.base import ModelHandle
from fishnet.inference.errors import ClassificationFailure, ShapeMismatch
from fishnet.inference.provider import ModelHandles
from fishnet.pipeline.outputs import DecodedOutputs, decode_outputs
from fishnet.pipeline.tensors import TensorArena
from fishnet.types import ClassifierOutputs

SPLIT = "split"
MULTIHEAD = "multihead"

# Head positions of the multi-head classifier.
SPECIES_HEAD = 0
FRESHNESS_HEAD = 1
DISEASE_HEAD = 2


def _score_vector(tensor: np.ndarray, expected: int, purpose: str) -> np.ndarray:
    vector = np.asarray(tensor, dtype=np.float32).reshape(-1)
    if vector.size != expected:
        raise ShapeMismatch(
            f"{purpose} output has {vector.size} scores, label schema has {expected}"
        )
    if not np.all(np.isfinite(vector)):
        raise ShapeMismatch(f"{purpose} output contains non-finite scores")
    return vector


def _scalar(tensor: np.ndarray, purpose: str) -> float:
    values = np.asarray(tensor, dtype=np.float32).reshape(-1)
    if values.size == 0 or not np.isfinite(values[0]):
        raise ShapeMismatch(f"{purpose} output is empty or non-finite")
    return float(values[0])


class ClassificationStage:
    def __init__(
        self,
        handles: ModelHandles,
        *,
        mode: str,
        species_labels: tuple[str, ...],
        disease_labels: tuple[str, ...],
        output_orders: dict[str, list[str]] | None = None,
    ) -> None:
        if mode not in (SPLIT, MULTIHEAD):
            raise ValueError(f"Unknown classifier mode: {mode}")
        roles = ("classifier",) if mode == MULTIHEAD else ("species", "disease")
        missing = [role for role in roles if handles.get(role) is None]
        if missing:
            raise ValueError(f"classifier mode {mode} needs model handles for {missing}")
        self._handles = handles
        self._mode = mode
        self._species_labels = species_labels
        self._disease_labels = disease_labels
        self._output_orders = output_orders or {}
        self._logger = logging.getLogger("fishnet.classifier")

    @property
    def mode(self) -> str:
        return self._mode

    def _run_model(self, role: str, crop: np.ndarray, arena: TensorArena) -> DecodedOutputs:
        handle: ModelHandle | None = self._handles.get(role)
        assert handle is not None
        raw: Any = arena.track(handle.predict(crop))
        return decode_outputs(raw, self._output_orders.get(role))

    def run(self, crop: np.ndarray, arena: TensorArena) -> ClassifierOutputs:
        try:
            if self._mode == MULTIHEAD:
                outputs = self._run_multihead(crop, arena)
            else:
                outputs = self._run_split(crop, arena)
        except ClassificationFailure:
            raise
        except Exception as exc:
            raise ClassificationFailure(f"classification stage failed: {exc}") from exc

        if self._logger.isEnabledFor(logging.DEBUG):
            top = np.argsort(outputs.species)[::-1][:3]
            self._logger.debug(
                "species top3=%s disease=%s freshness=%s",
                [f"{self._species_labels[i]}:{outputs.species[i] * 100:.1f}%" for i in top],
                [round(float(v), 3) for v in outputs.disease],
                outputs.freshness,
            )
        return outputs

    def _run_split(self, crop: np.ndarray, arena: TensorArena) -> ClassifierOutputs:
        species = self._run_model("species", crop, arena)
        disease = self._run_model("disease", crop, arena)
        return ClassifierOutputs(
            species=_score_vector(species.head(0, "species"), len(self._species_labels), "species"),
            disease=_score_vector(disease.head(0, "disease"), len(self._disease_labels), "disease"),
            freshness=None,
        )

    def _run_multihead(self, crop: np.ndarray, arena: TensorArena) -> ClassifierOutputs:
        heads = self._run_model("classifier", crop, arena)
        if len(heads) < 3:
            raise ShapeMismatch(
                f"multi-head classifier returned {len(heads)} outputs, expected species, freshness and disease"
            )
        return ClassifierOutputs(
            species=_score_vector(
                heads.head(SPECIES_HEAD, "species"), len(self._species_labels), "species"
            ),
            disease=_score_vector(
                heads.head(DISEASE_HEAD, "disease"), len(self._disease_labels), "disease"
            ),
            freshness=_scalar(heads.head(FRESHNESS_HEAD, "freshness"), "freshness"),
        )
