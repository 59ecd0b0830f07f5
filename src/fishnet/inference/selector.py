from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from fishnet.inference.backends.base import ModelHandle
from fishnet.inference.errors import BackendUnavailable, ModelLoadError
from fishnet.inference.models.model_spec import ModelSpec

_ONNX_NAMES = {"onnx", "onnxruntime"}


@dataclass
class BackendSelection:
    backend: ModelHandle
    reason: str


def _new_onnx_backend() -> ModelHandle:
    from fishnet.inference.backends.onnx_backend import OnnxRuntimeBackend

    return OnnxRuntimeBackend()


def _new_tflite_backend() -> ModelHandle:
    from fishnet.inference.backends.tflite_backend import TFLiteBackend

    return TFLiteBackend()


def _module_available(name: str) -> bool:
    try:
        __import__(name)
        return True
    except Exception:
        return False


def _tflite_available() -> bool:
    return _module_available("tflite_runtime") or _module_available("tensorflow")


def plan_backends(model_spec: ModelSpec) -> list[tuple[Callable[[], ModelHandle], str]]:
    requested = (model_spec.backend or "auto").lower().strip()
    suffix = Path(model_spec.model_path or "").suffix.lower()

    if requested in _ONNX_NAMES:
        return [(_new_onnx_backend, f"Requested backend '{requested}' for {model_spec.role}")]
    if requested == "tflite":
        return [(_new_tflite_backend, f"Requested backend 'tflite' for {model_spec.role}")]
    if requested not in {"", "auto"}:
        raise RuntimeError(f"Unsupported backend requested for {model_spec.role}: {requested}")

    # Auto selection policy: the artifact extension decides; unknown extensions
    # try ONNX Runtime first, then TFLite.
    if suffix == ".onnx":
        return [(_new_onnx_backend, "Auto policy: .onnx artifact uses onnxruntime")]
    if suffix == ".tflite":
        return [(_new_tflite_backend, "Auto policy: .tflite artifact uses tflite interpreter")]
    return [
        (_new_onnx_backend, f"Auto policy: unknown artifact '{suffix}', trying onnxruntime"),
        (_new_tflite_backend, f"Auto policy: unknown artifact '{suffix}', trying tflite"),
    ]


def describe_backend(model_spec: ModelSpec) -> dict[str, object]:
    """Report the backend the policy would pick without loading the model."""
    try:
        candidates = plan_backends(model_spec)
    except RuntimeError as exc:
        return {"ok": False, "selected": None, "reason": None, "error": str(exc)}

    factory, reason = candidates[0]
    selected = "onnxruntime" if factory is _new_onnx_backend else "tflite"
    runtime_ok = (
        _module_available("onnxruntime") if selected == "onnxruntime" else _tflite_available()
    )
    path_ok = bool(model_spec.model_path) and Path(str(model_spec.model_path)).exists()
    error = None
    if not runtime_ok:
        error = f"{selected} runtime is not installed"
    elif not path_ok:
        error = f"model file not found: {model_spec.model_path}"
    return {
        "ok": runtime_ok and path_ok,
        "selected": selected,
        "reason": reason,
        "error": error,
    }


def _choose_with_fallback(
    candidates: list[tuple[Callable[[], ModelHandle], str]],
    model_spec: ModelSpec,
) -> BackendSelection:
    errors: list[str] = []
    for factory, reason in candidates:
        backend: ModelHandle | None = None
        try:
            backend = factory()
            backend.load(model_spec)
            return BackendSelection(backend=backend, reason=reason)
        except (BackendUnavailable, ModelLoadError, FileNotFoundError) as exc:
            backend_name = backend.name() if backend is not None else "unknown-backend"
            errors.append(f"{backend_name}: {exc}")
            continue
    raise ModelLoadError(
        f"No inference backend could load the {model_spec.role} model. "
        + ("; ".join(errors) if errors else "No candidates evaluated.")
    )


def select_backend(model_spec: ModelSpec) -> BackendSelection:
    return _choose_with_fallback(plan_backends(model_spec), model_spec)
