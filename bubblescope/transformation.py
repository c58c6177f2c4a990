"""
Unwrap Transformation
=====================

Precomputation of the pixel mapping from the panorama back into the annular
mirror image. Generating the table is the expensive, one-time step; applying
it to frames only reads it.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import cv2

from .calibration import CalibrationModel, CalibrationParameters


def _read_only(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class TransformationTable:
    """
    Source sampling coordinates for every panorama pixel.

    ``source_x[y, x]`` and ``source_y[y, x]`` hold the (possibly fractional,
    possibly out of frame) location in the original frame that panorama pixel
    ``(x, y)`` samples. All arrays are read-only.
    """
    calibration: CalibrationParameters
    source_x: np.ndarray
    source_y: np.ndarray
    angles: np.ndarray              # (unwrap_width,) radians per column
    radius_fractions: np.ndarray    # (unwrap_height,) normalised radius per row
    map_x: np.ndarray               # float32, clamped to the frame
    map_y: np.ndarray               # float32, clamped to the frame
    fixed_maps: Tuple[np.ndarray, np.ndarray]  # cv2.CV_16SC2 form of map_x/map_y

    @property
    def source_size(self) -> Tuple[int, int]:
        """Frame size (width, height) the table was generated for."""
        return self.calibration.original_size

    @property
    def size(self) -> Tuple[int, int]:
        """Panorama size (width, height)."""
        return self.calibration.unwrap_size

    @property
    def shape(self) -> Tuple[int, int]:
        """Panorama array shape (height, width)."""
        return self.source_x.shape

    def lookup(self, x: int, y: int) -> Tuple[float, float]:
        """Source coordinate sampled by panorama pixel (x, y)."""
        return float(self.source_x[y, x]), float(self.source_y[y, x])

    def __str__(self) -> str:
        width, height = self.size
        src_w, src_h = self.source_size
        return f"TransformationTable({src_w}x{src_h} -> {width}x{height})"


class TransformationGenerator:
    """Builds :class:`TransformationTable` objects from calibration models."""

    @staticmethod
    def generate(model: CalibrationModel) -> TransformationTable:
        """
        Compute the unwrap mapping for a calibration model.

        Column ``x`` looks along the angle ``2*pi*x/unwrap_width`` rotated by the
        offset angle; row ``y`` interpolates linearly from ``radius_min`` towards
        ``radius_max``. The radial term is scaled per axis by half the frame
        width and height, so a circular mirror image in a non-square frame
        still maps onto full rows.

        Args:
            model: Calibration model to unwrap with

        Returns:
            Fully built, read-only transformation table

        Raises:
            ConfigurationError: If the model is invalid
        """
        params = model.freeze()
        return TransformationGenerator.from_parameters(params)

    @staticmethod
    def from_parameters(params: CalibrationParameters) -> TransformationTable:
        """Compute the unwrap mapping for an already validated snapshot."""
        src_w, src_h = params.original_size
        width, height = params.unwrap_size

        # Angle and its trigonometry are per column, radius is per row
        columns = np.arange(width, dtype=np.float64)
        angles = (columns / width) * (2.0 * np.pi) + np.radians(params.offset_angle)
        cos_theta = np.cos(angles)
        sin_theta = np.sin(angles)

        rows = np.arange(height, dtype=np.float64)
        radius_fractions = params.radius_min + (params.radius_max - params.radius_min) * (rows / height)

        radius_x = radius_fractions * (src_w / 2.0)
        radius_y = radius_fractions * (src_h / 2.0)
        source_x = params.u_centre * src_w + radius_x[:, None] * cos_theta[None, :]
        source_y = params.v_centre * src_h + radius_y[:, None] * sin_theta[None, :]

        # Clamp-to-edge happens once here instead of on every frame
        map_x = np.clip(source_x, 0.0, src_w - 1).astype(np.float32)
        map_y = np.clip(source_y, 0.0, src_h - 1).astype(np.float32)
        fixed_xy, fixed_frac = cv2.convertMaps(map_x, map_y, cv2.CV_16SC2)

        return TransformationTable(
            calibration=params,
            source_x=_read_only(source_x),
            source_y=_read_only(source_y),
            angles=_read_only(angles),
            radius_fractions=_read_only(radius_fractions),
            map_x=_read_only(map_x),
            map_y=_read_only(map_y),
            fixed_maps=(_read_only(fixed_xy), _read_only(fixed_frac)),
        )


def generate_transformation(model: CalibrationModel) -> TransformationTable:
    """Convenience wrapper around :meth:`TransformationGenerator.generate`."""
    return TransformationGenerator.generate(model)
