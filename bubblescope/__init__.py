"""
BubbleScope Panorama Unwrapper
==============================

Real-time conversion of the annular image produced by a spherical-mirror
lens attachment into a rectangular panorama:
- Calibration model with explicit validation
- One-time generation of an immutable transformation table
- Fast per-frame bilinear resampling (OpenCV or numpy, optionally banded)
- Capture tool plumbing: frame sources, preview and file outputs, presets

Version: 1.0.0
"""

from .calibration import CalibrationModel, CalibrationParameters
from .config import CaptureParameters, OutputMode, SystemConfig
from .errors import (
    ConfigurationError,
    DimensionMismatchError,
    FrameSourceError,
    IllegalStateError,
    UnwrapError,
)
from .resampler import FrameResampler, ResampleBackend
from .transformation import TransformationGenerator, TransformationTable, generate_transformation
from .unwrapper import Unwrapper, UnwrapperState

__version__ = "1.0.0"
__title__ = "BubbleScope Panorama Unwrapper"
__license__ = "MIT"

# Public API
__all__ = [
    "CalibrationModel",
    "CalibrationParameters",
    "CaptureParameters",
    "OutputMode",
    "SystemConfig",
    "ConfigurationError",
    "DimensionMismatchError",
    "FrameSourceError",
    "IllegalStateError",
    "UnwrapError",
    "FrameResampler",
    "ResampleBackend",
    "TransformationGenerator",
    "TransformationTable",
    "generate_transformation",
    "Unwrapper",
    "UnwrapperState",
]
