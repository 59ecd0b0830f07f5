"""Owns the loaded model handles and their load lifecycle.

A provider moves through ``loading -> ready`` or ``loading -> error`` exactly
once. Handles are loaded in parallel and are read-only afterwards, so analysis
calls may share them without locking.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from fishnet.config.models import ModelsConfig
from fishnet.inference.backends.base import ModelHandle
from fishnet.inference.errors import LoadError, NotReadyError
from fishnet.inference.models.model_spec import ModelSpec
from fishnet.inference.selector import select_backend

LOADING = "loading"
READY = "ready"
ERROR = "error"

SPLIT_ROLES = ("detector", "species", "disease")
MULTIHEAD_ROLES = ("detector", "classifier")


@dataclass(frozen=True)
class ProviderStatus:
    state: str
    message: str | None = None

    @property
    def ready(self) -> bool:
        return self.state == READY

    def __str__(self) -> str:
        if self.state == ERROR and self.message:
            return f"error({self.message})"
        return self.state


@dataclass(frozen=True)
class ModelHandles:
    detector: ModelHandle
    classifier: ModelHandle | None = None
    species: ModelHandle | None = None
    disease: ModelHandle | None = None

    def get(self, role: str) -> ModelHandle | None:
        return getattr(self, role, None)

    def all(self) -> list[ModelHandle]:
        return [h for h in (self.detector, self.classifier, self.species, self.disease) if h is not None]


def _load_with_selector(spec: ModelSpec) -> ModelHandle:
    selection = select_backend(spec)
    logging.getLogger("fishnet.provider").info(
        "backend selected role=%s backend=%s device=%s reason=%s",
        spec.role,
        selection.backend.name(),
        selection.backend.device_info(),
        selection.reason,
    )
    return selection.backend


class ModelProvider:
    def __init__(
        self,
        specs: dict[str, ModelSpec],
        *,
        max_workers: int = 3,
        loader: Callable[[ModelSpec], ModelHandle] | None = None,
    ) -> None:
        if "detector" not in specs:
            raise ValueError("ModelProvider requires a detector model spec")
        roles = set(specs)
        if roles not in (set(SPLIT_ROLES), set(MULTIHEAD_ROLES)):
            raise ValueError(
                f"ModelProvider expects roles {SPLIT_ROLES} or {MULTIHEAD_ROLES}, got {sorted(roles)}"
            )
        self._specs = dict(specs)
        self._max_workers = max(1, max_workers)
        self._loader = loader or _load_with_selector
        self._logger = logging.getLogger("fishnet.provider")
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._started = False
        self._status = ProviderStatus(LOADING)
        self._handles: ModelHandles | None = None

    @classmethod
    def from_config(
        cls,
        models: ModelsConfig,
        mode: str,
        loader: Callable[[ModelSpec], ModelHandle] | None = None,
    ) -> "ModelProvider":
        roles = MULTIHEAD_ROLES if mode == "multihead" else SPLIT_ROLES
        specs = {role: ModelSpec.from_config(role, getattr(models, role)) for role in roles}
        return cls(specs, max_workers=models.load_workers, loader=loader)

    @property
    def specs(self) -> dict[str, ModelSpec]:
        return dict(self._specs)

    @property
    def status(self) -> ProviderStatus:
        with self._lock:
            return self._status

    def start(self) -> None:
        """Begin loading in the background; returns immediately."""
        if not self._claim():
            return
        thread = threading.Thread(target=self._load_all, name="fishnet-model-load", daemon=True)
        thread.start()

    def load(self, timeout: float | None = None) -> ProviderStatus:
        """Load every handle once and return the final status.

        Later calls, or calls racing a background ``start()``, wait for the
        first load instead of loading again.
        """
        if self._claim():
            self._load_all()
        self._done.wait(timeout)
        return self.status

    def handles(self) -> ModelHandles:
        with self._lock:
            status = self._status
            handles = self._handles
        if status.state == LOADING:
            raise NotReadyError("Models are still loading")
        if status.state == ERROR or handles is None:
            raise LoadError(status.message or "Model loading failed")
        return handles

    def release(self) -> None:
        with self._lock:
            handles = self._handles
            self._handles = None
            if self._status.state == READY:
                self._status = ProviderStatus(ERROR, "provider released")
        if handles is None:
            return
        for handle in handles.all():
            handle.release()

    def _claim(self) -> bool:
        with self._lock:
            if self._started:
                return False
            self._started = True
            return True

    def _load_all(self) -> None:
        started = time.monotonic()
        loaded: dict[str, ModelHandle] = {}
        errors: list[str] = []
        workers = min(self._max_workers, len(self._specs))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fishnet-load") as pool:
            futures = {role: pool.submit(self._loader, spec) for role, spec in self._specs.items()}
            for role, future in futures.items():
                try:
                    loaded[role] = future.result()
                except Exception as exc:
                    self._logger.error("model load failed role=%s error=%s", role, exc)
                    errors.append(f"{role}: {exc}")

        if errors:
            for handle in loaded.values():
                handle.release()
            status = ProviderStatus(ERROR, "; ".join(errors))
            handles = None
        else:
            handles = ModelHandles(**loaded)
            status = ProviderStatus(READY)
            self._logger.info(
                "models ready roles=%s elapsed_ms=%.1f",
                ",".join(self._specs),
                (time.monotonic() - started) * 1000.0,
            )

        with self._lock:
            self._handles = handles
            self._status = status
        self._done.set()
