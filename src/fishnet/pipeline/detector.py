from __future__ import annotations

import logging
from typing import Any

import numpy as np

from fishnet.config.models import DetectorConfig
from fishnet.inference.backends.base import ModelHandle
from fishnet.inference.errors import DetectionFailure, ShapeMismatch
from fishnet.pipeline.outputs import decode_outputs
from fishnet.pipeline.preprocess import FramePreprocessor
from fishnet.pipeline.tensors import TensorArena
from fishnet.types import BoundingBox, DetectionOutcome, Frame


def canonical_grid(raw: Any, num_classes: int) -> np.ndarray:
    """Return the detector grid as ``(anchors, 4 + num_classes)``.

    Accepts ``(1, A, attrs)``, ``(1, attrs, A)``, their unbatched forms, and a
    flat buffer laid out anchor by anchor.
    """
    attrs = 4 + num_classes
    arr = np.asarray(raw, dtype=np.float32)
    while arr.ndim > 2 and arr.shape[0] == 1:
        arr = arr[0]
    if arr.ndim == 1:
        if arr.size == 0 or arr.size % attrs != 0:
            raise ShapeMismatch(f"flat detector output of {arr.size} values is not a multiple of {attrs}")
        return arr.reshape(-1, attrs)
    if arr.ndim != 2:
        raise ShapeMismatch(f"unsupported detector output shape {tuple(np.shape(raw))}")
    if arr.shape[1] == attrs:
        return arr
    if arr.shape[0] == attrs:
        return np.ascontiguousarray(arr.T)
    raise ShapeMismatch(
        f"detector output shape {tuple(np.shape(raw))} has no axis of {attrs} attributes"
    )


def decode_best_box(
    grid: np.ndarray,
    *,
    score_threshold: float,
    grid_size: int,
    normalized_cutoff: float = 1.5,
    max_detection_count: int = 50,
    default_box: list[float] | None = None,
) -> DetectionOutcome:
    """Pick the single highest-scoring anchor above threshold (arg-max, no NMS)."""
    fallback = BoundingBox(*(default_box or [0.1, 0.1, 0.9, 0.9]))
    if grid.shape[0] == 0:
        return DetectionOutcome(box=fallback, detection_count=0, best_score=0.0, detected=False)

    scores = grid[:, 4:].max(axis=1)
    above = scores > score_threshold
    count = min(int(np.count_nonzero(above)), max_detection_count)
    if not above.any():
        return DetectionOutcome(
            box=fallback,
            detection_count=0,
            best_score=float(scores.max()),
            detected=False,
        )

    best = int(np.argmax(np.where(above, scores, -np.inf)))
    cx, cy, w, h = (float(v) for v in grid[best, :4])

    # Exported detectors disagree on units: small centres mean normalized
    # coordinates, anything else is in input-grid pixels.
    scale = 1.0 if (cx < normalized_cutoff and w < normalized_cutoff) else float(grid_size)

    box = BoundingBox.clamped(
        y_min=(cy - h / 2.0) / scale,
        x_min=(cx - w / 2.0) / scale,
        y_max=(cy + h / 2.0) / scale,
        x_max=(cx + w / 2.0) / scale,
    )
    return DetectionOutcome(
        box=box,
        detection_count=count,
        best_score=float(scores[best]),
        detected=True,
    )


class DetectorStage:
    def __init__(
        self,
        handle: ModelHandle,
        config: DetectorConfig,
        *,
        input_size: int = 320,
        input_scale: str = "raw_0_255",
        output_order: list[str] | None = None,
    ) -> None:
        self._handle = handle
        self._config = config
        self._preprocessor = FramePreprocessor(input_size, input_scale)
        self._output_order = list(output_order or [])
        self._logger = logging.getLogger("fishnet.detector")
        self._anchor_warning_logged = False

    @property
    def input_size(self) -> int:
        return self._preprocessor.size

    def run(self, frame: Frame) -> DetectionOutcome:
        with TensorArena("detector") as arena:
            try:
                batch = self._preprocessor.prepare(frame, arena)
                raw = arena.track(self._handle.predict(batch))
                decoded = decode_outputs(raw, self._output_order)
                grid = canonical_grid(decoded.head(0, "detector grid"), self._config.num_classes)
            except Exception as exc:
                raise DetectionFailure(f"detector stage failed: {exc}") from exc

            if grid.shape[0] != self._config.num_anchors and not self._anchor_warning_logged:
                self._anchor_warning_logged = True
                self._logger.warning(
                    "detector grid has %d anchors, configured num_anchors=%d",
                    grid.shape[0],
                    self._config.num_anchors,
                )

            outcome = decode_best_box(
                grid,
                score_threshold=self._config.score_threshold,
                grid_size=self.input_size,
                normalized_cutoff=self._config.normalized_cutoff,
                max_detection_count=self._config.max_detection_count,
                default_box=self._config.default_box,
            )

        self._logger.debug(
            "detection detected=%s best_score=%.3f count=%d box=%s",
            outcome.detected,
            outcome.best_score,
            outcome.detection_count,
            [round(v, 4) for v in outcome.box.as_list()],
        )
        return outcome
