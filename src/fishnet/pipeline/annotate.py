from __future__ import annotations

import hashlib

import numpy as np

from fishnet.types import AnalysisResult


def _color_for_label(label: str) -> tuple[int, int, int]:
    # Stable per-species colour across process runs.
    digest = hashlib.sha1(label.encode("utf-8")).digest()
    b = 50 + (digest[0] % 180)
    g = 50 + (digest[1] % 180)
    r = 50 + (digest[2] % 180)
    return int(b), int(g), int(r)


def _pixel_box(result: AnalysisResult, width: int, height: int) -> tuple[int, int, int, int]:
    box = result.bounding_box
    x1 = int(round(box.x_min * (width - 1)))
    y1 = int(round(box.y_min * (height - 1)))
    x2 = int(round(box.x_max * (width - 1)))
    y2 = int(round(box.y_max * (height - 1)))
    return x1, y1, x2, y2


def draw_result_overlay(image_bgr: np.ndarray, result: AnalysisResult) -> np.ndarray:
    """Draw the box, species and disease verdict onto a copy of ``image_bgr``."""
    import cv2

    canvas = np.array(image_bgr, copy=True)
    height, width = canvas.shape[:2]
    thickness = max(1, min(width, height) // 200)
    font_scale = max(0.4, min(width, height) / 800.0)

    color = _color_for_label(result.species.name)
    x1, y1, x2, y2 = _pixel_box(result, width, height)
    cv2.rectangle(canvas, (x1, y1), (x2, y2), color, thickness + 1)

    headline = f"{result.species.name} {result.species.confidence:.1f}%"
    cv2.putText(
        canvas,
        headline,
        (x1, max(20, y1 - 8)),
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        color,
        thickness,
        cv2.LINE_AA,
    )

    disease_color = (0, 0, 255) if result.disease.has_disease else (0, 200, 0)
    status = f"{result.disease.name} | {result.freshness.label} {result.freshness.score:.2f}"
    cv2.putText(
        canvas,
        status,
        (12, max(20, int(36 * font_scale))),
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        disease_color,
        thickness,
        cv2.LINE_AA,
    )
    return canvas
