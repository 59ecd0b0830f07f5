"""Label schemas for the species and disease classifiers.

Position in each list is bound to the trained model's output index. Reordering
an entry silently relabels every prediction, so override files must keep the
training order.
"""

from __future__ import annotations

import logging

from fishnet.inference.models.model_spec import ModelSpec

SPECIES_LABELS: tuple[str, ...] = (
    "catfish",
    "catla",
    "common_carp",
    "crab",
    "grass_carp",
    "mackerel",
    "mrigal",
    "pink_perch",
    "prawn",
    "red_mullet",
    "rohu",
    "sea_bass",
    "sea_bream",
    "silver_carp",
    "sprat",
    "tilapia",
    "trout",
    "wild_fish_background",
)

DISEASE_LABELS: tuple[str, ...] = (
    "black_gill_disease",
    "healthy",
    "white_spot_virus",
)

_logger = logging.getLogger("fishnet.labels")


def resolve_labels(spec: ModelSpec | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if spec is None:
        return default
    file_labels = spec.read_labels()
    if not file_labels:
        return default
    if len(file_labels) != len(default):
        _logger.warning(
            "labels file %s has %d entries, built-in %s schema has %d",
            spec.labels_path,
            len(file_labels),
            spec.role,
            len(default),
        )
    return tuple(file_labels)
