"""
Calibration Model
=================

Geometric parameters describing the BubbleScope mirror image inside the
captured frame and the panorama it should be unwrapped to.
"""

import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigurationError


# Radii are fractions of the half frame size
MAX_RADIUS = 1.0


@dataclass(frozen=True)
class CalibrationParameters:
    """Validated, immutable snapshot of a calibration model."""
    original_width: int
    original_height: int
    u_centre: float
    v_centre: float
    radius_min: float
    radius_max: float
    offset_angle: float
    unwrap_width: int
    unwrap_height: int

    @property
    def original_size(self) -> Tuple[int, int]:
        """Source frame size as (width, height)."""
        return self.original_width, self.original_height

    @property
    def unwrap_size(self) -> Tuple[int, int]:
        """Panorama size as (width, height)."""
        return self.unwrap_width, self.unwrap_height


def derive_unwrap_height(unwrap_width: int, radius_min: float, radius_max: float) -> int:
    """
    Panorama height keeping the aspect of the annulus at its mean radius.

    The mean circumference of the band maps onto ``unwrap_width`` columns, so
    the radial depth gets the same number of pixels per unit length.
    """
    mean_circumference = math.pi * (radius_max + radius_min)
    if mean_circumference <= 0:
        return 1
    return max(1, int(round(unwrap_width * (radius_max - radius_min) / mean_circumference)))


def _require(cond: bool, msg: str, field: str) -> None:
    if not cond:
        raise ConfigurationError(msg, field=field)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _is_positive_int(value: Any) -> bool:
    return _is_number(value) and int(value) == value and value > 0


class CalibrationModel:
    """
    Mutable calibration of the mirror image and the target panorama.

    Setters only store values. Nothing is validated or regenerated until
    :meth:`validate` (or a transformation generator) looks at the model.
    All setters return ``self`` for method chaining.
    """

    def __init__(self):
        self.original_width: Optional[int] = None
        self.original_height: Optional[int] = None
        self.u_centre: Optional[float] = None
        self.v_centre: Optional[float] = None
        self.radius_min: Optional[float] = None
        self.radius_max: Optional[float] = None
        self.offset_angle: float = 0.0
        self.unwrap_width: Optional[int] = None
        self.unwrap_height: Optional[int] = None

    def set_original_size(self, width: int, height: int) -> 'CalibrationModel':
        """
        Set the size of the captured (fisheye) frame.

        Args:
            width: Source frame width in pixels
            height: Source frame height in pixels

        Returns:
            Self for method chaining
        """
        self.original_width = width
        self.original_height = height
        return self

    def set_centre(self, u: float, v: float) -> 'CalibrationModel':
        """
        Set the normalised centre of the mirror image.

        Args:
            u: Horizontal centre as a fraction of the frame width
            v: Vertical centre as a fraction of the frame height

        Returns:
            Self for method chaining
        """
        self.u_centre = u
        self.v_centre = v
        return self

    def set_radius_range(self, radius_min: float, radius_max: float) -> 'CalibrationModel':
        """
        Set the usable annular band as normalised radii.

        Args:
            radius_min: Inner radius (maps to the first panorama row)
            radius_max: Outer radius

        Returns:
            Self for method chaining
        """
        self.radius_min = radius_min
        self.radius_max = radius_max
        return self

    def set_offset_angle(self, degrees: float) -> 'CalibrationModel':
        """Set the rotation of the panorama seam in degrees."""
        self.offset_angle = degrees
        return self

    def set_unwrap_width(self, width: int) -> 'CalibrationModel':
        """Set the panorama width in pixels."""
        self.unwrap_width = width
        return self

    def set_unwrap_height(self, height: Optional[int]) -> 'CalibrationModel':
        """Set the panorama height in pixels, or None to derive it from the band."""
        self.unwrap_height = height
        return self

    def validate(self) -> None:
        """
        Check every field.

        Raises:
            ConfigurationError: For the first missing or out-of-range field
        """
        for field in ("original_width", "original_height"):
            value = getattr(self, field)
            _require(value is not None, f"{field} is not set", field)
            _require(_is_positive_int(value), f"{field} must be a positive integer, got {value!r}", field)

        for field in ("u_centre", "v_centre"):
            value = getattr(self, field)
            _require(value is not None, f"{field} is not set", field)
            _require(_is_number(value) and 0.0 <= value <= 1.0,
                     f"{field} must be within [0, 1], got {value!r}", field)

        for field in ("radius_min", "radius_max"):
            value = getattr(self, field)
            _require(value is not None, f"{field} is not set", field)
            _require(_is_number(value) and 0.0 <= value <= MAX_RADIUS,
                     f"{field} must be within [0, {MAX_RADIUS}], got {value!r}", field)
        _require(self.radius_min < self.radius_max,
                 f"radius_min ({self.radius_min}) must be smaller than radius_max ({self.radius_max})",
                 "radius_min")

        _require(_is_number(self.offset_angle) and -360.0 < self.offset_angle <= 360.0,
                 f"offset_angle must be within (-360, 360], got {self.offset_angle!r}", "offset_angle")

        _require(self.unwrap_width is not None, "unwrap_width is not set", "unwrap_width")
        _require(_is_positive_int(self.unwrap_width),
                 f"unwrap_width must be a positive integer, got {self.unwrap_width!r}", "unwrap_width")

        if self.unwrap_height is not None:
            _require(_is_positive_int(self.unwrap_height),
                     f"unwrap_height must be a positive integer, got {self.unwrap_height!r}", "unwrap_height")

    def is_valid(self) -> bool:
        """Whether the model can be used to generate a transformation."""
        try:
            self.validate()
        except ConfigurationError:
            return False
        return True

    def resolved_unwrap_height(self) -> int:
        """
        Panorama height to generate.

        Returns the explicit height when one was set, otherwise the height
        derived from the radius band.

        Raises:
            ConfigurationError: If the model is invalid
        """
        self.validate()
        if self.unwrap_height is not None:
            return int(self.unwrap_height)
        return derive_unwrap_height(int(self.unwrap_width), float(self.radius_min), float(self.radius_max))

    def freeze(self) -> CalibrationParameters:
        """
        Validate and take an immutable snapshot of the model.

        Raises:
            ConfigurationError: If the model is invalid
        """
        unwrap_height = self.resolved_unwrap_height()
        return CalibrationParameters(
            original_width=int(self.original_width),
            original_height=int(self.original_height),
            u_centre=float(self.u_centre),
            v_centre=float(self.v_centre),
            radius_min=float(self.radius_min),
            radius_max=float(self.radius_max),
            offset_angle=float(self.offset_angle),
            unwrap_width=int(self.unwrap_width),
            unwrap_height=unwrap_height,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Calibration fields as a plain dictionary (source size excluded)."""
        return {
            'centre': (self.u_centre, self.v_centre),
            'radius': (self.radius_min, self.radius_max),
            'offset_angle': self.offset_angle,
            'unwrap_width': self.unwrap_width,
            'unwrap_height': self.unwrap_height,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CalibrationModel':
        """Build a model from :meth:`to_dict` output. Missing keys stay unset."""
        model = cls()
        if data.get('centre') is not None:
            model.set_centre(*data['centre'])
        if data.get('radius') is not None:
            model.set_radius_range(*data['radius'])
        if data.get('offset_angle') is not None:
            model.set_offset_angle(data['offset_angle'])
        if data.get('unwrap_width') is not None:
            model.set_unwrap_width(data['unwrap_width'])
        model.set_unwrap_height(data.get('unwrap_height'))
        return model

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CalibrationModel):
            return NotImplemented
        return vars(self) == vars(other)

    def __str__(self) -> str:
        """String representation of the calibration model."""
        return (f"CalibrationModel(original={self.original_width}x{self.original_height}, "
                f"centre=({self.u_centre}, {self.v_centre}), "
                f"radius=({self.radius_min}, {self.radius_max}), "
                f"offset={self.offset_angle}deg, "
                f"unwrap={self.unwrap_width}x{self.unwrap_height}, "
                f"valid={self.is_valid()})")

