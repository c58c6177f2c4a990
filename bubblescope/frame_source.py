"""
Frame Sources
=============

Capture devices and still image files behind a single frame source
interface. Sources provide the original frame size for calibration and the
frames fed to the unwrapper.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import cv2

from .config import CaptureParameters
from .errors import FrameSourceError


IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}


class FrameSource(ABC):
    """Common interface for anything that produces frames."""

    @abstractmethod
    def open(self, target: Union[int, str, None] = None) -> 'FrameSource':
        """Open the source. Returns self for method chaining."""

    @abstractmethod
    def close(self) -> None:
        """Release the source. Safe to call more than once."""

    @abstractmethod
    def is_open(self) -> bool:
        """Whether frames can be grabbed."""

    @abstractmethod
    def grab(self) -> np.ndarray:
        """
        Grab the next frame.

        Raises:
            FrameSourceError: If the source is closed or delivers no frame
        """

    @property
    @abstractmethod
    def width(self) -> int:
        """Frame width in pixels."""

    @property
    @abstractmethod
    def height(self) -> int:
        """Frame height in pixels."""

    @property
    def size(self) -> Tuple[int, int]:
        """Frame size as (width, height)."""
        return self.width, self.height

    def __enter__(self) -> 'FrameSource':
        if not self.is_open():
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class CaptureDeviceSource(FrameSource):
    """
    Live capture device (or video file) read through OpenCV.

    Features:
    - Requested capture size applied when the device opens
    - Frame rate reporting
    """

    def __init__(self, target: Union[int, str] = 0):
        """
        Initialize capture source.

        Args:
            target: Device index or video file path
        """
        self.target = target
        self._capture: Optional[cv2.VideoCapture] = None
        self._requested_size: Optional[Tuple[int, int]] = None

    def open(self, target: Union[int, str, None] = None) -> 'CaptureDeviceSource':
        if target is not None:
            self.target = target
        self.close()

        capture = cv2.VideoCapture(self.target)
        if not capture.isOpened():
            capture.release()
            raise FrameSourceError(f"Can't open video capture source: {self.target}")

        self._capture = capture
        if self._requested_size is not None:
            self._apply_capture_size()
        return self

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None

    def is_open(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    def grab(self) -> np.ndarray:
        if not self.is_open():
            raise FrameSourceError(f"Capture source {self.target} is not open")

        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise FrameSourceError(f"Capture source {self.target} delivered no frame")
        return frame

    def set_capture_size(self, width: int, height: int) -> 'CaptureDeviceSource':
        """
        Request a capture size from the device.

        The device may choose a different size; read :attr:`size` after
        opening to get the actual one.

        Args:
            width: Requested frame width
            height: Requested frame height

        Returns:
            Self for method chaining
        """
        self._requested_size = (int(width), int(height))
        if self.is_open():
            self._apply_capture_size()
        return self

    def _apply_capture_size(self) -> None:
        width, height = self._requested_size
        self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

    def _property(self, prop: int) -> float:
        if not self.is_open():
            raise FrameSourceError(f"Capture source {self.target} is not open")
        return self._capture.get(prop)

    @property
    def width(self) -> int:
        return int(self._property(cv2.CAP_PROP_FRAME_WIDTH))

    @property
    def height(self) -> int:
        return int(self._property(cv2.CAP_PROP_FRAME_HEIGHT))

    @property
    def frame_rate(self) -> float:
        """Frame rate reported by the device (0 when unknown)."""
        return float(self._property(cv2.CAP_PROP_FPS))

    def __str__(self) -> str:
        return f"CaptureDeviceSource({self.target}, open={self.is_open()})"


class ImageFileSource(FrameSource):
    """Still image file; every grab returns a fresh copy of the same frame."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._image: Optional[np.ndarray] = None

    def open(self, target: Union[int, str, None] = None) -> 'ImageFileSource':
        if target is not None:
            self.path = str(target)
        if not self.path:
            raise FrameSourceError("No image file given")
        if not Path(self.path).exists():
            raise FrameSourceError(f"Image file not found: {self.path}")

        image = cv2.imread(self.path, cv2.IMREAD_UNCHANGED)
        if image is None or image.size == 0:
            raise FrameSourceError(f"Cannot read image: {self.path}")

        self._image = image
        return self

    def close(self) -> None:
        self._image = None

    def is_open(self) -> bool:
        return self._image is not None

    def grab(self) -> np.ndarray:
        if self._image is None:
            raise FrameSourceError(f"Image source {self.path} is not open")
        return self._image.copy()

    @property
    def width(self) -> int:
        if self._image is None:
            raise FrameSourceError(f"Image source {self.path} is not open")
        return int(self._image.shape[1])

    @property
    def height(self) -> int:
        if self._image is None:
            raise FrameSourceError(f"Image source {self.path} is not open")
        return int(self._image.shape[0])

    def __str__(self) -> str:
        return f"ImageFileSource({self.path}, open={self.is_open()})"


def create_frame_source(params: CaptureParameters) -> FrameSource:
    """
    Pick the frame source variant for a set of capture parameters.

    Image files are read with :class:`ImageFileSource`; any other file (a
    video) and device indices go through :class:`CaptureDeviceSource`, which
    is asked for the configured original size.
    """
    if params.source_file:
        if Path(params.source_file).suffix.lower() in IMAGE_EXTENSIONS:
            return ImageFileSource(params.source_file)
        return CaptureDeviceSource(params.source_file)

    source = CaptureDeviceSource(params.capture_device)
    source.set_capture_size(params.original_width, params.original_height)
    return source
