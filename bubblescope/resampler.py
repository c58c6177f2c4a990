"""
Frame Resampler
===============

Per-frame hot path: turns a captured annular frame into a panorama by
bilinear sampling at the coordinates stored in a transformation table.
"""

from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import List, Tuple

import numpy as np
import cv2

from .errors import DimensionMismatchError, UnwrapError
from .transformation import TransformationTable


class ResampleBackend(Enum):
    """Available resampling implementations."""
    OPENCV = "opencv"
    NUMPY = "numpy"


def frame_size(frame: np.ndarray) -> Tuple[int, int]:
    """Size of an OpenCV-layout frame as (width, height)."""
    if frame.ndim not in (2, 3):
        raise ValueError(f"Frame must be a 2D or 3D array, got shape {frame.shape}")
    height, width = frame.shape[:2]
    return width, height


def _row_bands(height: int, workers: int) -> List[Tuple[int, int]]:
    bands = np.array_split(np.arange(height), max(1, min(workers, height)))
    return [(int(band[0]), int(band[-1]) + 1) for band in bands if band.size]


# Element types cv2.remap has kernels for
_OPENCV_DTYPES = frozenset(np.dtype(t) for t in (np.uint8, np.uint16, np.int16, np.float32, np.float64))


def _opencv_supports(frame: np.ndarray) -> bool:
    channels = frame.shape[2] if frame.ndim == 3 else 1
    return frame.dtype in _OPENCV_DTYPES and channels <= cv2.CV_CN_MAX


def _cast_like(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return np.clip(np.rint(values), info.min, info.max).astype(dtype)
    return values.astype(dtype)


class FrameResampler:
    """
    Applies transformation tables to frames.

    Sampling coordinates are clamped to the frame when the table is built, so
    every read stays inside the source buffer (clamp-to-edge). The source
    frame is never written; each call returns a newly allocated panorama.
    """

    def __init__(self, backend: ResampleBackend = ResampleBackend.OPENCV, workers: int = 1):
        """
        Initialize the resampler.

        Args:
            backend: Sampling implementation to use
            workers: Number of row bands processed in parallel (1 disables threading)
        """
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.backend = ResampleBackend(backend)
        self.workers = workers

    def apply(self, table: TransformationTable, frame: np.ndarray) -> np.ndarray:
        """
        Resample a source frame into a panorama.

        Args:
            table: Transformation generated for this frame size
            frame: Source frame, (H, W) or (H, W, C)

        Returns:
            Panorama of shape (unwrap_height, unwrap_width[, C]) with the
            frame's dtype

        Raises:
            DimensionMismatchError: If the frame size differs from the table's source size
        """
        frame = np.asarray(frame)
        if self.backend is ResampleBackend.OPENCV:
            frame = np.ascontiguousarray(frame)
        actual = frame_size(frame)
        if actual != table.source_size:
            raise DimensionMismatchError(table.source_size, actual)

        height, width = table.shape
        output = np.empty((height, width) + frame.shape[2:], dtype=frame.dtype)
        bands = _row_bands(height, self.workers)
        # Frames OpenCV cannot remap take the numpy path
        if self.backend is ResampleBackend.OPENCV and _opencv_supports(frame):
            remap = self._remap_opencv
        else:
            remap = self._remap_numpy

        if len(bands) == 1:
            output[...] = remap(table, frame, 0, height)
            return output

        with ThreadPoolExecutor(max_workers=len(bands)) as executor:
            futures = {
                executor.submit(remap, table, frame, start, stop): (start, stop)
                for start, stop in bands
            }
            for future, (start, stop) in futures.items():
                output[start:stop] = future.result()

        return output

    @staticmethod
    def _remap_opencv(table: TransformationTable, frame: np.ndarray,
                      start: int, stop: int) -> np.ndarray:
        map1, map2 = table.fixed_maps
        try:
            band = cv2.remap(
                frame,
                map1[start:stop],
                map2[start:stop],
                interpolation=cv2.INTER_LINEAR,
                borderMode=cv2.BORDER_REPLICATE
            )
        except cv2.error as e:
            raise UnwrapError(f"Remap failed: {e}")

        # OpenCV drops a trailing singleton channel axis
        if frame.ndim == 3 and band.ndim == 2:
            band = band[:, :, None]
        return band

    @staticmethod
    def _remap_numpy(table: TransformationTable, frame: np.ndarray,
                     start: int, stop: int) -> np.ndarray:
        src_w, src_h = table.source_size
        x = table.map_x[start:stop].astype(np.float64)
        y = table.map_y[start:stop].astype(np.float64)

        x0 = np.floor(x).astype(np.intp)
        y0 = np.floor(y).astype(np.intp)
        x1 = np.minimum(x0 + 1, src_w - 1)
        y1 = np.minimum(y0 + 1, src_h - 1)
        wx = x - x0
        wy = y - y0
        if frame.ndim == 3:
            wx = wx[:, :, None]
            wy = wy[:, :, None]

        top = frame[y0, x0] * (1.0 - wx) + frame[y0, x1] * wx
        bottom = frame[y1, x0] * (1.0 - wx) + frame[y1, x1] * wx
        return _cast_like(top * (1.0 - wy) + bottom * wy, frame.dtype)


def resample(table: TransformationTable, frame: np.ndarray) -> np.ndarray:
    """Resample with the default single-threaded OpenCV backend."""
    return FrameResampler().apply(table, frame)
