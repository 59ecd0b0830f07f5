from __future__ import annotations

import logging
import math

import cv2
import numpy as np

from fishnet.pipeline.preprocess import UNIT_0_1, normalize
from fishnet.pipeline.tensors import TensorArena, to_host
from fishnet.types import BoundingBox, Frame


def _pixel_span(low: float, high: float, extent: int) -> tuple[int, int]:
    start = min(extent - 1, max(0, int(math.floor(low * extent))))
    stop = min(extent, max(start + 1, int(math.ceil(high * extent))))
    return start, stop


def crop_and_resize(pixels: np.ndarray, box: BoundingBox, size: int) -> np.ndarray:
    """Crop ``pixels`` to ``box`` and resize to ``(size, size, 3)`` in [0, 1]."""
    height, width = pixels.shape[:2]
    y0, y1 = _pixel_span(box.y_min, box.y_max, height)
    x0, x1 = _pixel_span(box.x_min, box.x_max, width)
    region = pixels[y0:y1, x0:x1]
    resized = cv2.resize(region, (size, size), interpolation=cv2.INTER_LINEAR)
    return normalize(resized, UNIT_0_1)


class RegionExtractor:
    """Crops the original full-resolution frame, never the detector-resized copy."""

    def __init__(self, size: int = 224) -> None:
        self.size = int(size)
        self._logger = logging.getLogger("fishnet.region")

    def extract(self, frame: Frame, box: BoundingBox, arena: TensorArena) -> np.ndarray:
        with TensorArena("region") as scratch:
            crop = scratch.track(crop_and_resize(frame.pixels, box, self.size))
            batch = arena.track(to_host(crop[None, ...]))

        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "region crop size=%d brightness=%.3f box=%s",
                self.size,
                float(batch.mean()),
                [round(v, 4) for v in box.as_list()],
            )
        return batch
