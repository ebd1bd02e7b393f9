from __future__ import annotations


class ModelCacheError(Exception):
    """Base class for errors raised by the model cache."""


class ModelConfigurationError(ModelCacheError):
    """A model type is missing a required builder or was registered incorrectly."""


class UnknownModelError(ModelConfigurationError):
    def __init__(self, model_cls: type) -> None:
        name = getattr(model_cls, "__name__", repr(model_cls))
        super().__init__(f"Model type {name} is not registered with this repository")
        self.model_cls = model_cls
