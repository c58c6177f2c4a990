"""
Unwrap Errors
=============

Exception types raised by the unwrap core and its capture collaborators.
"""

from typing import Optional, Tuple


class UnwrapError(Exception):
    """Base class for all BubbleScope unwrap errors."""
    pass


class ConfigurationError(UnwrapError, ValueError):
    """A calibration field is missing or out of range."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DimensionMismatchError(UnwrapError, ValueError):
    """A frame does not match the source size the table was generated for."""

    def __init__(self, expected: Tuple[int, int], actual: Tuple[int, int]):
        super().__init__(
            f"Frame size {actual[0]}x{actual[1]} does not match "
            f"transformation source size {expected[0]}x{expected[1]}"
        )
        self.expected = expected
        self.actual = actual


class IllegalStateError(UnwrapError, RuntimeError):
    """Operation not allowed in the current unwrapper state."""
    pass


class FrameSourceError(UnwrapError, IOError):
    """A frame source or output sink failed."""
    pass
