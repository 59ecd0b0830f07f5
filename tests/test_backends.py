from __future__ import annotations

import unittest

import numpy as np

from fishnet.inference.backends.tflite_backend import TFLiteBackend
from fishnet.inference.errors import ModelLoadError
from fishnet.inference.models.model_spec import ModelSpec
from fishnet.inference.selector import plan_backends, select_backend


class _FakeInterpreter:
    def __init__(self, tensors: dict[int, np.ndarray]) -> None:
        self._tensors = tensors
        self.inputs: dict[int, np.ndarray] = {}

    def set_tensor(self, index: int, value: np.ndarray) -> None:
        self.inputs[index] = value

    def invoke(self) -> None:
        return None

    def get_tensor(self, index: int) -> np.ndarray:
        return self._tensors[index]


class BackendSelectorTests(unittest.TestCase):
    def test_extension_decides_backend(self) -> None:
        onnx_plan = plan_backends(ModelSpec(role="detector", model_path="det.onnx"))
        tflite_plan = plan_backends(ModelSpec(role="detector", model_path="det.tflite"))

        self.assertEqual(len(onnx_plan), 1)
        self.assertIn("onnxruntime", onnx_plan[0][1])
        self.assertEqual(len(tflite_plan), 1)
        self.assertIn("tflite", tflite_plan[0][1])

    def test_unknown_extension_tries_both_backends(self) -> None:
        plan = plan_backends(ModelSpec(role="species", model_path="species.bin"))

        self.assertEqual(len(plan), 2)

    def test_unsupported_requested_backend_raises(self) -> None:
        with self.assertRaises(RuntimeError):
            plan_backends(ModelSpec(role="species", model_path="species.tflite", backend="coreml"))

    def test_missing_model_file_raises_model_load_error(self) -> None:
        with self.assertRaises(ModelLoadError):
            select_backend(ModelSpec(role="detector", model_path="/nonexistent/det.tflite"))


class TFLiteQuantizationTests(unittest.TestCase):
    def _backend(self, input_dtype, output_detail: dict, output: np.ndarray) -> TFLiteBackend:
        backend = TFLiteBackend()
        backend._input_detail = {"index": 0, "dtype": input_dtype, "quantization": (0.5, 10)}
        backend._output_details = [dict(output_detail, index=1)]
        backend._interpreter = _FakeInterpreter({1: output})
        return backend

    def test_uint8_input_is_quantized_with_scale_and_zero_point(self) -> None:
        backend = self._backend(np.uint8, {"dtype": np.float32}, np.zeros((1, 3), dtype=np.float32))

        quantized = backend._quantize_input(np.array([[0.0, 1.0, 500.0]], dtype=np.float32))

        self.assertEqual(quantized.dtype, np.uint8)
        self.assertEqual(quantized.tolist(), [[10, 12, 255]])

    def test_integer_output_is_dequantized(self) -> None:
        output = np.array([[128, 192, 255]], dtype=np.uint8)
        backend = self._backend(
            np.float32,
            {"dtype": np.uint8, "quantization": (1.0 / 256.0, 128)},
            output,
        )

        result = backend.predict(np.zeros((1, 3), dtype=np.float32))

        np.testing.assert_allclose(result, [[0.0, 0.25, 127.0 / 256.0]], atol=1e-6)

    def test_zero_scale_integer_output_is_rejected(self) -> None:
        backend = self._backend(
            np.float32,
            {"dtype": np.int8, "quantization": (0.0, 0)},
            np.zeros((1, 3), dtype=np.int8),
        )

        with self.assertRaises(ModelLoadError):
            backend.predict(np.zeros((1, 3), dtype=np.float32))

    def test_zero_scale_integer_input_is_rejected(self) -> None:
        backend = self._backend(np.int8, {"dtype": np.float32}, np.zeros((1, 3), dtype=np.float32))
        backend._input_detail["quantization"] = (0.0, 0)

        with self.assertRaises(ModelLoadError):
            backend._quantize_input(np.array([[0.0, 1.0, 2.0]], dtype=np.float32))


if __name__ == "__main__":
    unittest.main()
