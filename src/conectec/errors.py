"""Exception hierarchy for the classification pipeline.

Fatal kinds (``ModelLoadError``, ``ConfigurationError``) abort pipeline construction.
Per-frame kinds (``PreprocessingError``, ``InferenceError``) skip the frame and let the
stream continue.
"""

from __future__ import annotations


class ConectecError(Exception):
    """Base class for all pipeline errors."""


class ModelLoadError(ConectecError):
    """The model artifact could not be found, downloaded, or deserialized."""


class ConfigurationError(ConectecError):
    """Model, label table, or tensor shape disagree with each other."""


class PreprocessingError(ConectecError):
    """An image could not be decoded or normalized."""


class InferenceError(ConectecError):
    """The forward pass failed for a single input."""
