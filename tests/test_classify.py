from __future__ import annotations

import unittest

import numpy as np

from fakes import FakeHandle, disease_scores, species_scores

from fishnet.inference.errors import ClassificationFailure, ShapeMismatch
from fishnet.inference.labels import DISEASE_LABELS, SPECIES_LABELS
from fishnet.inference.provider import ModelHandles
from fishnet.pipeline.classify import ClassificationStage
from fishnet.pipeline.tensors import TensorArena

CROP = np.zeros((1, 224, 224, 3), dtype=np.float32)


def _stage(mode: str, output_orders=None, **handles) -> ClassificationStage:
    return ClassificationStage(
        ModelHandles(detector=FakeHandle(), **handles),
        mode=mode,
        species_labels=SPECIES_LABELS,
        disease_labels=DISEASE_LABELS,
        output_orders=output_orders,
    )


class ClassificationStageTests(unittest.TestCase):
    def test_split_mode_runs_both_models_without_freshness(self) -> None:
        stage = _stage(
            "split",
            species=FakeHandle(species_scores(rohu=0.9)),
            disease=FakeHandle(disease_scores(0.1, 0.8, 0.1)),
        )

        with TensorArena("test") as arena:
            outputs = stage.run(CROP, arena)

        self.assertEqual(int(np.argmax(outputs.species)), SPECIES_LABELS.index("rohu"))
        self.assertIsNone(outputs.freshness)
        self.assertEqual(outputs.disease.shape, (3,))

    def test_multihead_positional_list(self) -> None:
        raw = [species_scores(catla=0.8), np.array([[0.3]]), disease_scores(0.1, 0.2, 0.7)]
        stage = _stage("multihead", classifier=FakeHandle(raw))

        with TensorArena("test") as arena:
            outputs = stage.run(CROP, arena)

        self.assertAlmostEqual(outputs.freshness, 0.3, places=6)
        self.assertEqual(int(np.argmax(outputs.disease)), DISEASE_LABELS.index("white_spot_virus"))

    def test_multihead_mapping_uses_output_order(self) -> None:
        raw = {
            "d": disease_scores(0.1, 0.8, 0.1),
            "s": species_scores(tilapia=0.9),
            "f": np.array([[0.75]]),
        }
        stage = _stage(
            "multihead",
            output_orders={"classifier": ["s", "f", "d"]},
            classifier=FakeHandle(raw),
        )

        with TensorArena("test") as arena:
            outputs = stage.run(CROP, arena)

        self.assertEqual(int(np.argmax(outputs.species)), SPECIES_LABELS.index("tilapia"))
        self.assertAlmostEqual(outputs.freshness, 0.75, places=6)

    def test_multihead_with_single_output_is_a_shape_mismatch(self) -> None:
        stage = _stage("multihead", classifier=FakeHandle(species_scores(rohu=1.0)))

        with TensorArena("test") as arena:
            with self.assertRaises(ShapeMismatch):
                stage.run(CROP, arena)

    def test_label_count_mismatch_is_a_shape_mismatch(self) -> None:
        stage = _stage(
            "split",
            species=FakeHandle(np.zeros((1, 5), dtype=np.float32)),
            disease=FakeHandle(disease_scores(0.1, 0.8, 0.1)),
        )

        with TensorArena("test") as arena:
            with self.assertRaises(ShapeMismatch):
                stage.run(CROP, arena)

    def test_model_errors_become_classification_failures(self) -> None:
        stage = _stage(
            "split",
            species=FakeHandle(error=RuntimeError("interpreter crashed")),
            disease=FakeHandle(disease_scores(0.1, 0.8, 0.1)),
        )

        with TensorArena("test") as arena:
            with self.assertRaises(ClassificationFailure):
                stage.run(CROP, arena)

    def test_missing_handles_for_mode_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            _stage("multihead", species=FakeHandle(), disease=FakeHandle())


if __name__ == "__main__":
    unittest.main()
