from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from fishnet.config.loader import load_runtime_config


class ConfigLoaderTests(unittest.TestCase):
    def test_defaults_match_reference_thresholds(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_runtime_config(repo_root=Path(tmpdir))

            self.assertEqual(config.classifier.mode, "split")
            self.assertAlmostEqual(config.detector.score_threshold, 0.25)
            self.assertEqual(config.detector.default_box, [0.1, 0.1, 0.9, 0.9])
            self.assertEqual(config.fallback.box, [0.15, 0.15, 0.85, 0.85])
            self.assertAlmostEqual(config.arbiter.background_override_threshold, 0.05)
            self.assertEqual(config.models.detector.input_scale, "raw_0_255")
            self.assertEqual(config.models.species.input_scale, "unit_0_1")

    def test_relative_model_paths_resolve_against_repo_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            config = load_runtime_config(repo_root=root)

            self.assertEqual(
                config.models.detector.path,
                str((root / "models" / "fish_detector_v1.tflite").resolve()),
            )

    def test_json_file_and_cli_overrides_are_merged(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            config_file = root / "fishnet.json"
            config_file.write_text(
                """
{
  "classifier": {"mode": "multihead"},
  "arbiter": {"strict_background_rescue": true, "background_override_threshold": 0.10}
}
""".strip(),
                encoding="utf-8",
            )

            config = load_runtime_config(
                repo_root=root,
                config_path=str(config_file),
                cli_overrides={"seed": 11, "models": {"detector": {"path": "/opt/det.onnx"}}},
            )

            self.assertEqual(config.classifier.mode, "multihead")
            self.assertTrue(config.arbiter.strict_background_rescue)
            self.assertAlmostEqual(config.arbiter.background_override_threshold, 0.10)
            self.assertEqual(config.seed, 11)
            self.assertEqual(config.models.detector.path, "/opt/det.onnx")

    def test_missing_explicit_config_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(FileNotFoundError):
                load_runtime_config(repo_root=Path(tmpdir), config_path=str(Path(tmpdir) / "nope.json"))

    def test_invalid_values_are_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            with self.assertRaises(ValueError):
                load_runtime_config(repo_root=root, cli_overrides={"classifier": {"mode": "ensemble"}})
            with self.assertRaises(ValueError):
                load_runtime_config(repo_root=root, cli_overrides={"detector": {"score_threshold": 1.5}})
            with self.assertRaises(ValueError):
                load_runtime_config(
                    repo_root=root,
                    cli_overrides={"arbiter": {"calibration": {"low_band": [0.9, 0.8]}}},
                )
            with self.assertRaises(ValueError):
                load_runtime_config(
                    repo_root=root,
                    cli_overrides={"models": {"detector": {"input_scale": "minus_one_one"}}},
                )


if __name__ == "__main__":
    unittest.main()
