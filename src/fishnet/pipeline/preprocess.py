from __future__ import annotations

import cv2
import numpy as np

from fishnet.pipeline.tensors import TensorArena, to_host
from fishnet.types import Frame

RAW_0_255 = "raw_0_255"
UNIT_0_1 = "unit_0_1"
SCHEMES = (RAW_0_255, UNIT_0_1)


def resize(pixels: np.ndarray, size: int) -> np.ndarray:
    """Bilinear resize to a square ``(size, size, 3)`` tensor."""
    if size < 1:
        raise ValueError(f"resize size must be positive, got {size}")
    return cv2.resize(pixels, (size, size), interpolation=cv2.INTER_LINEAR)


def normalize(tensor: np.ndarray, scheme: str) -> np.ndarray:
    values = np.asarray(tensor, dtype=np.float32)
    if scheme == RAW_0_255:
        return values
    if scheme == UNIT_0_1:
        return values / 255.0
    raise ValueError(f"Unknown input scale scheme: {scheme}")


def prepare_detector_input(
    frame: Frame,
    size: int,
    scheme: str,
    arena: TensorArena | None = None,
) -> np.ndarray:
    """Resize, normalize and batch ``frame`` into an owned ``(1, size, size, 3)`` tensor."""
    with TensorArena("prepare") as scratch:
        resized = scratch.track(resize(frame.pixels, size))
        normalized = scratch.track(normalize(resized, scheme))
        batch = to_host(normalized[None, ...])
    if arena is not None:
        arena.track(batch)
    return batch


class FramePreprocessor:
    def __init__(self, size: int, scheme: str) -> None:
        if scheme not in SCHEMES:
            raise ValueError(f"Unknown input scale scheme: {scheme}")
        self.size = int(size)
        self.scheme = scheme

    def prepare(self, frame: Frame, arena: TensorArena) -> np.ndarray:
        return prepare_detector_input(frame, self.size, self.scheme, arena)
