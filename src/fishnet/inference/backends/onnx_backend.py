from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np

from fishnet.inference.backends.base import ModelHandle
from fishnet.inference.errors import BackendUnavailable, ModelLoadError
from fishnet.inference.models.model_spec import ModelSpec


class OnnxRuntimeBackend(ModelHandle):
    """ONNX Runtime session wrapper; accepts NHWC input and transposes for NCHW graphs."""

    def __init__(self) -> None:
        self._logger = logging.getLogger("fishnet.backend.onnx")
        self._session: Any | None = None
        self._model_spec: ModelSpec | None = None
        self._input_name = ""
        self._output_names: list[str] = []
        self._input_format = "nhwc"
        self._providers: list[str] = []

    def load(self, model_spec: ModelSpec) -> None:
        try:
            import onnxruntime as ort
        except ImportError as exc:
            raise BackendUnavailable(
                "ONNX backend requested but `onnxruntime` is not installed."
            ) from exc

        if not model_spec.model_path:
            raise ModelLoadError(f"models.{model_spec.role}.path is required for the ONNX backend")
        model_path = Path(model_spec.model_path)
        if not model_path.exists():
            raise ModelLoadError(f"ONNX model missing: {model_path}")

        options = ort.SessionOptions()
        if model_spec.num_threads:
            options.intra_op_num_threads = int(model_spec.num_threads)

        available = ort.get_available_providers()
        providers = [p for p in ("CUDAExecutionProvider", "CPUExecutionProvider") if p in available]
        try:
            session = ort.InferenceSession(
                str(model_path),
                sess_options=options,
                providers=providers or None,
            )
        except Exception as exc:
            raise ModelLoadError(f"Failed to load ONNX model {model_path}: {exc}") from exc

        inputs = session.get_inputs()
        if len(inputs) != 1:
            raise ModelLoadError(
                f"ONNX model {model_path.name} expects {len(inputs)} inputs, only single-input graphs are supported"
            )
        self._input_name = inputs[0].name
        self._input_format = self._detect_input_format(inputs[0].shape)
        self._output_names = [out.name for out in session.get_outputs()]
        self._providers = list(session.get_providers())
        self._session = session
        self._model_spec = model_spec
        self._logger.info(
            "onnx model loaded role=%s path=%s input=%s format=%s outputs=%s providers=%s",
            model_spec.role,
            model_path.name,
            self._input_name,
            self._input_format,
            self._output_names,
            ",".join(self._providers),
        )

    @staticmethod
    def _detect_input_format(shape: list[Any]) -> str:
        if len(shape) == 4 and shape[1] in (1, 3) and shape[3] not in (1, 3):
            return "nchw"
        return "nhwc"

    def predict(self, inputs: np.ndarray) -> Any:
        if self._session is None:
            raise RuntimeError("Backend not loaded")

        feed = np.asarray(inputs, dtype=np.float32)
        if self._input_format == "nchw":
            feed = np.ascontiguousarray(np.transpose(feed, (0, 3, 1, 2)))
        outputs = self._session.run(None, {self._input_name: feed})
        if len(outputs) == 1:
            return outputs[0]
        return dict(zip(self._output_names, outputs))

    def name(self) -> str:
        return "onnxruntime"

    def device_info(self) -> str:
        if "CUDAExecutionProvider" in self._providers:
            return "cuda"
        return "cpu"

    def release(self) -> None:
        self._session = None
