from __future__ import annotations

from pathlib import Path
from typing import Iterator

import cv2
import numpy as np

from fishnet.types import Frame

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp"}


def iter_image_paths(uri: str) -> Iterator[Path]:
    """Yield image files under ``uri`` in sorted order, or ``uri`` itself."""
    path = Path(uri).expanduser()
    if path.is_dir():
        yield from sorted(
            p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
        )
        return
    if path.is_file():
        yield path
        return
    raise FileNotFoundError(f"Image source not found: {uri}")


def read_bgr(path: Path) -> np.ndarray:
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError(f"Unable to decode image: {path}")
    return image


def frame_from_bgr(image_bgr: np.ndarray, source: str = "") -> Frame:
    return Frame(cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB), source=source)


def load_frame(path: str | Path) -> Frame:
    path = Path(path)
    return frame_from_bgr(read_bgr(path), source=str(path))
