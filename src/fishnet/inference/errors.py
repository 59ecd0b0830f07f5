class BackendUnavailable(RuntimeError):
    """Raised when a requested backend cannot run in this environment."""


class ModelLoadError(RuntimeError):
    """Raised when model files are missing or unsupported."""


class LoadError(RuntimeError):
    """Raised when model initialization failed; fatal until the provider is rebuilt."""


class NotReadyError(RuntimeError):
    """Raised when inference is attempted before models finished loading."""


class DetectionFailure(RuntimeError):
    """Raised when the detector stage fails before a box is determined."""


class ClassificationFailure(RuntimeError):
    """Raised when classification fails after a box was determined."""


class ShapeMismatch(ClassificationFailure):
    """Raised when a model returns an unexpected number or shape of outputs."""
