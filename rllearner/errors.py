from __future__ import annotations


class LearningEngineError(Exception):
    """Base class for errors raised by the learning engine."""


class ShapeMismatchError(LearningEngineError, ValueError):
    """A state vector or parameter array does not match the configured shape."""


class InsufficientDataError(LearningEngineError):
    """The replay buffer cannot serve the requested sample."""


class PersistenceError(LearningEngineError):
    """A checkpoint could not be written, read or validated."""
