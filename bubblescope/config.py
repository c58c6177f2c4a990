"""
System Configuration
====================

Capture parameters and application-wide settings, using frozen dataclasses
for type safety and validation.
"""

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional


class OutputMode(Enum):
    """Ways unwrapped frames can be written out."""
    STILLS = "stills"
    VIDEO = "video"
    MJPG = "mjpg"


@dataclass(frozen=True)
class CaptureParameters:
    """User options defining capture and unwrap properties."""

    # Frame source: a capture device index, or an image/video file when set
    capture_device: int = 0
    source_file: Optional[str] = None

    # Original (fisheye) frame size requested from the device
    original_width: int = 640
    original_height: int = 480

    # Panorama size, height derived from the radius band when None
    unwrap_width: int = 800
    unwrap_height: Optional[int] = None

    # Mirror calibration
    radius_min: float = 0.25
    radius_max: float = 0.6
    u_centre: float = 0.5
    v_centre: float = 0.5
    offset_angle: float = 180.0

    # Display
    show_original: bool = False
    show_unwrap: bool = True

    # Output file names (None disables the mode)
    stills_name: Optional[str] = None
    video_name: Optional[str] = None
    mjpg_name: Optional[str] = None

    @property
    def outputs(self) -> Dict[OutputMode, str]:
        """Enabled output modes mapped to their file names."""
        names = {
            OutputMode.STILLS: self.stills_name,
            OutputMode.VIDEO: self.video_name,
            OutputMode.MJPG: self.mjpg_name,
        }
        return {mode: name for mode, name in names.items() if name}

    @property
    def calibration(self) -> Dict[str, object]:
        """Calibration fields in preset form."""
        return {
            'centre': (self.u_centre, self.v_centre),
            'radius': (self.radius_min, self.radius_max),
            'offset_angle': self.offset_angle,
            'unwrap_width': self.unwrap_width,
            'unwrap_height': self.unwrap_height,
        }

    def with_calibration(self, calibration: Dict[str, object]) -> 'CaptureParameters':
        """
        Copy of these parameters with calibration fields taken from a preset.

        Args:
            calibration: Dictionary as produced by :attr:`calibration`

        Returns:
            New parameters object
        """
        changes = {}
        if calibration.get('centre') is not None:
            changes['u_centre'], changes['v_centre'] = calibration['centre']
        if calibration.get('radius') is not None:
            changes['radius_min'], changes['radius_max'] = calibration['radius']
        if calibration.get('offset_angle') is not None:
            changes['offset_angle'] = calibration['offset_angle']
        if calibration.get('unwrap_width') is not None:
            changes['unwrap_width'] = calibration['unwrap_width']
        if 'unwrap_height' in calibration:
            changes['unwrap_height'] = calibration['unwrap_height']
        return replace(self, **changes)

    def describe(self) -> List[str]:
        """Human readable report of the configuration, one line per setting."""
        if self.source_file:
            source = f"File: {self.source_file}"
        else:
            source = f"Capture device: {self.capture_device}"

        height = self.unwrap_height if self.unwrap_height is not None else "auto"
        outputs = ", ".join(f"{mode.value}={name}" for mode, name in self.outputs.items()) or "none"

        return [
            source,
            f"Original image size: {self.original_width}x{self.original_height}",
            f"Unwrap image size: {self.unwrap_width}x{height}",
            f"Unwrap image radius: min={self.radius_min:f}, max={self.radius_max:f}",
            f"Original image centre: u={self.u_centre:f}, v={self.v_centre:f}",
            f"Offset angle: {self.offset_angle:f}deg.",
            f"Show original: {int(self.show_original)}",
            f"Show unwrap: {int(self.show_unwrap)}",
            f"Outputs: {outputs}",
        ]


class SystemConfig:
    """Main system configuration singleton."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.defaults = CaptureParameters()
        self.default_output_name = "BubbleScope_Capture"

        # Windows and keys
        self.original_window = "BubbleScope Original Image"
        self.unwrap_window = "BubbleScope Unwrapped Image"
        self.exit_key = 27           # ESC
        self.still_key = ord('s')

        # Encoders
        self.codecs = {
            OutputMode.VIDEO: "XVID",
            OutputMode.MJPG: "MJPG",
        }
        self.video_extension = ".avi"
        self.still_extension = ".jpg"
        self.default_frame_rate = 30.0

        # Calibration presets
        self.preset_dir = os.environ.get(
            "BUBBLESCOPE_PRESET_DIR", os.path.join(os.getcwd(), "presets")
        )

        self._initialized = True

    def codec_for(self, mode: OutputMode) -> str:
        """FourCC code for a video output mode."""
        if mode not in self.codecs:
            raise ValueError(f"No codec for output mode: {mode.value}. Available: {[m.value for m in self.codecs]}")
        return self.codecs[mode]
