from __future__ import annotations

import unittest

import numpy as np

from fakes import FakeTensor

from fishnet.pipeline.preprocess import FramePreprocessor, normalize, prepare_detector_input
from fishnet.pipeline.tensors import TensorArena, to_host
from fishnet.types import Frame


class TensorArenaTests(unittest.TestCase):
    def setUp(self) -> None:
        FakeTensor.reset()

    def test_release_on_normal_exit(self) -> None:
        with TensorArena("normal") as arena:
            arena.track(FakeTensor([1.0]))
            arena.track({"a": FakeTensor([2.0]), "b": [FakeTensor([3.0])]})

        self.assertEqual(arena.released, 2)
        self.assertEqual(FakeTensor.live, set())

    def test_release_on_exception(self) -> None:
        tensor = FakeTensor([1.0])
        with self.assertRaises(RuntimeError):
            with TensorArena("failing") as arena:
                arena.track(tensor)
                raise RuntimeError("stage failed")

        self.assertTrue(tensor.disposed)
        self.assertEqual(arena.live, 0)

    def test_to_host_copies_into_float32(self) -> None:
        source = np.arange(6, dtype=np.uint8).reshape(2, 3)

        host = to_host(source)
        source[0, 0] = 99

        self.assertEqual(host.dtype, np.float32)
        self.assertEqual(host[0, 0], 0.0)
        self.assertTrue(host.flags["C_CONTIGUOUS"])


class FramePreprocessorTests(unittest.TestCase):
    def test_unit_scale_divides_by_255(self) -> None:
        frame = Frame(np.full((30, 40, 3), 255, dtype=np.uint8))

        with TensorArena("prep") as arena:
            batch = FramePreprocessor(224, "unit_0_1").prepare(frame, arena)

        self.assertEqual(batch.shape, (1, 224, 224, 3))
        self.assertAlmostEqual(float(batch.max()), 1.0, places=5)

    def test_detector_input_keeps_raw_pixel_range(self) -> None:
        frame = Frame(np.full((30, 40, 3), 200, dtype=np.uint8))

        batch = prepare_detector_input(frame, 320, "raw_0_255")

        self.assertEqual(batch.shape, (1, 320, 320, 3))
        self.assertEqual(batch.dtype, np.float32)
        self.assertAlmostEqual(float(batch.max()), 200.0, places=3)

    def test_unknown_scheme_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            FramePreprocessor(224, "minus_one_one")
        with self.assertRaises(ValueError):
            normalize(np.zeros((2, 2, 3)), "minus_one_one")

    def test_frame_rejects_non_rgb_buffers(self) -> None:
        with self.assertRaises(ValueError):
            Frame(np.zeros((10, 10), dtype=np.uint8))
        frame = Frame(np.zeros((10, 10, 3), dtype=np.uint8))
        self.assertFalse(frame.pixels.flags.writeable)


if __name__ == "__main__":
    unittest.main()
