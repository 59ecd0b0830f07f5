from __future__ import annotations

import random
import unittest

import numpy as np

from fakes import disease_scores, species_scores

from fishnet.config.models import ArbiterConfig, CalibrationConfig, ClassifierConfig
from fishnet.inference.labels import DISEASE_LABELS, SPECIES_LABELS
from fishnet.pipeline.arbiter import DecisionArbiter, calibrate, disease_verdict, freshness_verdict
from fishnet.types import ClassifierOutputs


class _FixedRandom:
    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


def _arbiter(config: ArbiterConfig | None = None, rng=None) -> DecisionArbiter:
    return DecisionArbiter(
        config or ArbiterConfig(),
        ClassifierConfig(),
        species_labels=SPECIES_LABELS,
        disease_labels=DISEASE_LABELS,
        rng=rng or _FixedRandom(0.5),
    )


class SpeciesRuleTests(unittest.TestCase):
    def test_background_is_overridden_by_runner_up(self) -> None:
        state = _arbiter().select_species(
            species_scores(wild_fish_background=0.90, tilapia=0.06, rohu=0.04)
        )

        self.assertEqual(state.choice.label, "tilapia")
        self.assertEqual(state.applied, ["anti_background"])

    def test_background_stays_when_runner_up_is_weak(self) -> None:
        state = _arbiter().select_species(
            species_scores(wild_fish_background=0.97, tilapia=0.02, rohu=0.01)
        )

        self.assertEqual(state.choice.label, "wild_fish_background")
        self.assertEqual(state.applied, [])

    def test_strict_rescue_takes_third_place_crustacean(self) -> None:
        config = ArbiterConfig(background_override_threshold=0.10, strict_background_rescue=True)
        state = _arbiter(config).select_species(
            species_scores(wild_fish_background=0.80, tilapia=0.08, crab=0.07)
        )

        self.assertEqual(state.choice.label, "crab")
        self.assertEqual(state.applied, ["background_rescue"])

    def test_rescue_is_off_by_default(self) -> None:
        config = ArbiterConfig(background_override_threshold=0.10)
        state = _arbiter(config).select_species(
            species_scores(wild_fish_background=0.80, tilapia=0.08, crab=0.07)
        )

        self.assertEqual(state.choice.label, "wild_fish_background")

    def test_low_confidence_confusable_switches_to_alternative(self) -> None:
        state = _arbiter().select_species(
            species_scores(sea_bass=0.40, tilapia=0.30, rohu=0.10, catla=0.08)
        )

        self.assertEqual(state.choice.label, "rohu")
        self.assertEqual(state.applied, ["confusable_pair"])

    def test_confident_confusable_is_kept(self) -> None:
        state = _arbiter().select_species(species_scores(sea_bass=0.70, rohu=0.20))

        self.assertEqual(state.choice.label, "sea_bass")


class CalibrationTests(unittest.TestCase):
    def test_low_scores_land_in_low_band(self) -> None:
        self.assertAlmostEqual(calibrate(0.30, _FixedRandom(0.0)), 0.82)
        self.assertAlmostEqual(calibrate(0.30, _FixedRandom(1.0)), 0.90)

    def test_high_scores_land_in_high_band(self) -> None:
        self.assertAlmostEqual(calibrate(0.995, _FixedRandom(0.5)), 0.955)

    def test_mid_scores_pass_through(self) -> None:
        self.assertAlmostEqual(calibrate(0.9, _FixedRandom(0.5)), 0.9)

    def test_disabled_calibration_is_identity(self) -> None:
        self.assertAlmostEqual(
            calibrate(0.3, _FixedRandom(0.5), CalibrationConfig(enabled=False)), 0.3
        )

    def test_calibration_never_changes_the_label(self) -> None:
        outputs = ClassifierOutputs(
            species=species_scores(catla=0.35, rohu=0.30).reshape(-1),
            disease=disease_scores(0.1, 0.8, 0.1).reshape(-1),
        )

        arbitration = _arbiter().arbitrate(outputs)

        self.assertEqual(arbitration.species.name, "catla")
        self.assertAlmostEqual(arbitration.species.confidence, 86.0, places=4)
        self.assertAlmostEqual(arbitration.raw_species_score, 0.35, places=6)

    def test_seeded_random_is_reproducible(self) -> None:
        outputs = ClassifierOutputs(
            species=species_scores(rohu=0.5).reshape(-1),
            disease=disease_scores(0.1, 0.8, 0.1).reshape(-1),
        )
        first = _arbiter(rng=random.Random(3)).arbitrate(outputs)
        second = _arbiter(rng=random.Random(3)).arbitrate(outputs)

        self.assertEqual(first.species, second.species)


class DiseaseVerdictTests(unittest.TestCase):
    def test_below_thresholds_is_healthy(self) -> None:
        verdict = disease_verdict(np.array([0.35, 0.55, 0.10]), DISEASE_LABELS, ArbiterConfig())

        self.assertEqual(verdict.name, "Healthy")
        self.assertFalse(verdict.has_disease)
        self.assertAlmostEqual(verdict.confidence, 55.0, places=4)

    def test_white_spot_above_threshold_is_flagged(self) -> None:
        verdict = disease_verdict(np.array([0.10, 0.55, 0.35]), DISEASE_LABELS, ArbiterConfig())

        self.assertEqual(verdict.name, "White Spot Risk")
        self.assertTrue(verdict.has_disease)

    def test_white_spot_checked_before_black_gill(self) -> None:
        verdict = disease_verdict(np.array([0.45, 0.20, 0.35]), DISEASE_LABELS, ArbiterConfig())

        self.assertEqual(verdict.name, "White Spot Risk")

    def test_black_gill_above_threshold_is_flagged(self) -> None:
        verdict = disease_verdict(np.array([0.45, 0.50, 0.05]), DISEASE_LABELS, ArbiterConfig())

        self.assertEqual(verdict.name, "Black Gill Risk")
        self.assertTrue(verdict.has_disease)

    def test_non_healthy_argmax_below_its_threshold_is_healthy(self) -> None:
        verdict = disease_verdict([0.38, 0.33, 0.29], DISEASE_LABELS, ArbiterConfig())

        self.assertEqual(verdict.name, "Healthy")
        self.assertFalse(verdict.has_disease)
        self.assertAlmostEqual(verdict.confidence, 38.0, places=3)

    def test_white_spot_argmax_below_threshold_is_healthy(self) -> None:
        verdict = disease_verdict([0.20, 0.25, 0.28], DISEASE_LABELS, ArbiterConfig())

        self.assertEqual(verdict.name, "Healthy")
        self.assertFalse(verdict.has_disease)
        self.assertAlmostEqual(verdict.confidence, 28.0, places=3)

    def test_float32_score_at_white_spot_threshold_is_flagged(self) -> None:
        # float32(0.30) reads back as 0.30000001.
        verdict = disease_verdict([0.10, 0.60, 0.30], DISEASE_LABELS, ArbiterConfig())

        self.assertEqual(verdict.name, "White Spot Risk")
        self.assertTrue(verdict.has_disease)
        self.assertAlmostEqual(verdict.confidence, 60.0, places=3)


class FreshnessVerdictTests(unittest.TestCase):
    def test_missing_freshness_uses_default(self) -> None:
        verdict = freshness_verdict(None, ClassifierConfig())

        self.assertEqual((verdict.score, verdict.label), (0.95, "Fresh"))

    def test_threshold_splits_fresh_and_stale(self) -> None:
        self.assertEqual(freshness_verdict(0.7, ClassifierConfig()).label, "Fresh")
        self.assertEqual(freshness_verdict(0.3, ClassifierConfig()).label, "Stale")


if __name__ == "__main__":
    unittest.main()
