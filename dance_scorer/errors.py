"""
Exceptions raised by the dance scorer.
"""


class DanceScorerError(Exception):
    """Base class for all dance scorer errors."""


class ConfigError(DanceScorerError, ValueError):
    """Invalid configuration value or file."""


class SourceAcquisitionError(DanceScorerError, RuntimeError):
    """A video file or camera could not be opened or produced no frame."""


class ModelLoadError(DanceScorerError, RuntimeError):
    """The pose-estimation model could not be loaded."""
