"""Exceptions raised while processing decorrelation experiments."""


class DecorrError(Exception):
    """Base class for all errors raised by decorr."""


class ConfigError(DecorrError, ValueError):
    """Invalid pipeline configuration (bad geometry, singular transform, unknown keys)."""


class InputRootMissingError(DecorrError, FileNotFoundError):
    """The images root directory does not exist."""


class FilenameParseError(DecorrError, ValueError):
    """A frame file name does not contain a frame index."""


class FrameLoadError(DecorrError, OSError):
    """A frame is missing or could not be decoded."""


class RoiOutOfBoundsError(DecorrError, ValueError):
    """The reference region does not fit inside the reference frame."""


class ResultsWriteError(DecorrError, OSError):
    """The results CSV could not be opened or written."""
