from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np

from fishnet.inference.backends.base import ModelHandle
from fishnet.inference.errors import BackendUnavailable, ModelLoadError
from fishnet.inference.models.model_spec import ModelSpec


def _interpreter_class() -> tuple[Any, str]:
    try:
        from tflite_runtime.interpreter import Interpreter

        return Interpreter, "tflite-runtime"
    except ImportError:
        pass
    try:
        import tensorflow as tf
    except ImportError as exc:
        raise BackendUnavailable(
            "TFLite backend requested but neither `tflite-runtime` nor `tensorflow` is installed."
        ) from exc
    return tf.lite.Interpreter, "tensorflow"


class TFLiteBackend(ModelHandle):
    """TensorFlow Lite interpreter with int8/uint8 (de)quantization at the edges."""

    def __init__(self) -> None:
        self._logger = logging.getLogger("fishnet.backend.tflite")
        self._interpreter: Any | None = None
        self._model_spec: ModelSpec | None = None
        self._input_detail: dict[str, Any] = {}
        self._output_details: list[dict[str, Any]] = []
        self._runtime_name = ""

    def load(self, model_spec: ModelSpec) -> None:
        interpreter_cls, runtime_name = _interpreter_class()

        if not model_spec.model_path:
            raise ModelLoadError(f"models.{model_spec.role}.path is required for the TFLite backend")
        model_path = Path(model_spec.model_path)
        if not model_path.exists():
            raise ModelLoadError(f"TFLite model missing: {model_path}")

        kwargs: dict[str, Any] = {"model_path": str(model_path)}
        if model_spec.num_threads:
            kwargs["num_threads"] = int(model_spec.num_threads)
        try:
            interpreter = interpreter_cls(**kwargs)
            interpreter.allocate_tensors()
        except Exception as exc:
            raise ModelLoadError(f"Failed to construct TFLite interpreter for {model_path}: {exc}") from exc

        input_details = interpreter.get_input_details()
        if len(input_details) != 1:
            raise ModelLoadError(
                f"TFLite model {model_path.name} expects {len(input_details)} inputs, only single-input models are supported"
            )
        self._input_detail = input_details[0]
        self._output_details = list(interpreter.get_output_details())
        self._interpreter = interpreter
        self._model_spec = model_spec
        self._runtime_name = runtime_name
        self._logger.info(
            "tflite model loaded role=%s path=%s runtime=%s input_shape=%s input_dtype=%s outputs=%d",
            model_spec.role,
            model_path.name,
            runtime_name,
            list(self._input_detail.get("shape", [])),
            np.dtype(self._input_detail["dtype"]).name,
            len(self._output_details),
        )

    def _quantize_input(self, inputs: np.ndarray) -> np.ndarray:
        dtype = np.dtype(self._input_detail["dtype"])
        real = np.asarray(inputs, dtype=np.float32)
        if dtype == np.float32:
            return real
        if not np.issubdtype(dtype, np.integer):
            raise ModelLoadError(f"Unsupported TFLite input dtype: {dtype}")
        scale, zero_point = self._input_detail.get("quantization", (0.0, 0))
        if not scale:
            raise ModelLoadError(
                f"Integer input {self._input_detail.get('name', '?')} has zero quantization scale"
            )
        quantized = np.round(real / scale + zero_point)
        info = np.iinfo(dtype)
        return np.clip(quantized, info.min, info.max).astype(dtype)

    def _real_output(self, detail: dict[str, Any]) -> np.ndarray:
        assert self._interpreter is not None
        arr = self._interpreter.get_tensor(detail["index"])
        if np.issubdtype(np.dtype(detail["dtype"]), np.integer):
            scale, zero_point = detail.get("quantization", (0.0, 0))
            if not scale:
                raise ModelLoadError(
                    f"Integer output {detail.get('name', '?')} has zero quantization scale"
                )
            return scale * (arr.astype(np.float32) - zero_point)
        return np.array(arr, dtype=np.float32, copy=True)

    def predict(self, inputs: np.ndarray) -> Any:
        if self._interpreter is None:
            raise RuntimeError("Backend not loaded")

        self._interpreter.set_tensor(self._input_detail["index"], self._quantize_input(inputs))
        self._interpreter.invoke()
        outputs = [self._real_output(detail) for detail in self._output_details]
        if len(outputs) == 1:
            return outputs[0]
        return outputs

    def name(self) -> str:
        return "tflite"

    def device_info(self) -> str:
        return f"cpu ({self._runtime_name})" if self._runtime_name else "cpu"

    def release(self) -> None:
        self._interpreter = None
