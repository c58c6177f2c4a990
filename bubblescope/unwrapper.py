"""
BubbleScope Unwrapper
=====================

Facade owning a calibration model and the transformation generated from it.
Frames can only be unwrapped once a transformation exists for the current
calibration.
"""

import threading
from enum import Enum
from typing import TYPE_CHECKING, Optional

import numpy as np

from .calibration import CalibrationModel
from .errors import IllegalStateError
from .resampler import FrameResampler, ResampleBackend
from .transformation import TransformationGenerator, TransformationTable

if TYPE_CHECKING:
    from .config import CaptureParameters


class UnwrapperState(Enum):
    """Lifecycle of an unwrapper."""
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    READY = "ready"


class Unwrapper:
    """
    Converts annular BubbleScope frames into panoramas.

    Any calibration change discards the current transformation, so
    :meth:`generate_transformation` must be called again before the next
    :meth:`unwrap`. A new table is published with a single reference swap
    after it has been fully built; an unwrap already running keeps using the
    table it started with.
    """

    def __init__(self,
                 model: Optional[CalibrationModel] = None,
                 resampler: Optional[FrameResampler] = None):
        """
        Initialize the unwrapper.

        Args:
            model: Initial calibration (a fresh empty model if omitted)
            resampler: Resampler used by :meth:`unwrap`
        """
        self._model = model if model is not None else CalibrationModel()
        self._resampler = resampler if resampler is not None else FrameResampler()
        self._table: Optional[TransformationTable] = None
        self._generate_lock = threading.Lock()

    @classmethod
    def from_parameters(cls,
                        params: 'CaptureParameters',
                        backend: ResampleBackend = ResampleBackend.OPENCV,
                        workers: int = 1) -> 'Unwrapper':
        """
        Build an unwrapper configured from capture parameters.

        Args:
            params: :class:`~bubblescope.config.CaptureParameters`
            backend: Resampling backend
            workers: Row bands processed in parallel

        Returns:
            Configured (not yet generated) unwrapper
        """
        unwrapper = cls(resampler=FrameResampler(backend, workers))
        unwrapper.set_original_size(params.original_width, params.original_height)
        unwrapper.set_centre(params.u_centre, params.v_centre)
        unwrapper.set_radius_range(params.radius_min, params.radius_max)
        unwrapper.set_offset_angle(params.offset_angle)
        unwrapper.set_unwrap_width(params.unwrap_width)
        unwrapper.set_unwrap_height(params.unwrap_height)
        return unwrapper

    # Configuration surface

    def _invalidate(self) -> None:
        self._table = None

    def _configure(self, setter, *args) -> 'Unwrapper':
        # Under the generation lock: a published table always matches the model
        with self._generate_lock:
            setter(*args)
            self._invalidate()
        return self

    def set_original_size(self, width: int, height: int) -> 'Unwrapper':
        """Set the source frame size. Discards the current transformation."""
        return self._configure(self._model.set_original_size, width, height)

    def set_centre(self, u: float, v: float) -> 'Unwrapper':
        """Set the normalised mirror centre. Discards the current transformation."""
        return self._configure(self._model.set_centre, u, v)

    def set_radius_range(self, radius_min: float, radius_max: float) -> 'Unwrapper':
        """Set the normalised radius band. Discards the current transformation."""
        return self._configure(self._model.set_radius_range, radius_min, radius_max)

    def set_offset_angle(self, degrees: float) -> 'Unwrapper':
        """Set the seam rotation in degrees. Discards the current transformation."""
        return self._configure(self._model.set_offset_angle, degrees)

    def set_unwrap_width(self, width: int) -> 'Unwrapper':
        """Set the panorama width. Discards the current transformation."""
        return self._configure(self._model.set_unwrap_width, width)

    def set_unwrap_height(self, height: Optional[int]) -> 'Unwrapper':
        """Set (or clear) the panorama height. Discards the current transformation."""
        return self._configure(self._model.set_unwrap_height, height)

    # State

    @property
    def model(self) -> CalibrationModel:
        """The calibration model. Mutate it through the unwrapper setters."""
        return self._model

    @property
    def table(self) -> Optional[TransformationTable]:
        """Current transformation, None unless READY."""
        return self._table

    @property
    def state(self) -> UnwrapperState:
        """Current lifecycle state."""
        if self._table is not None:
            return UnwrapperState.READY
        if self._model.is_valid():
            return UnwrapperState.CONFIGURED
        return UnwrapperState.UNCONFIGURED

    @property
    def is_ready(self) -> bool:
        """Whether :meth:`unwrap` can be called."""
        return self._table is not None

    # Operations

    def generate_transformation(self) -> TransformationTable:
        """
        Generate the transformation for the current calibration.

        Returns:
            The newly published table

        Raises:
            ConfigurationError: If the calibration is invalid; the previous
                table (if any) and the state are left untouched
        """
        with self._generate_lock:
            table = TransformationGenerator.generate(self._model)
            self._table = table
        return table

    def unwrap(self, frame: np.ndarray) -> np.ndarray:
        """
        Unwrap one annular frame into a panorama.

        Args:
            frame: Source frame matching the calibrated original size

        Returns:
            Newly allocated panorama frame

        Raises:
            IllegalStateError: If no transformation has been generated
            DimensionMismatchError: If the frame size does not match the transformation
        """
        table = self._table
        if table is None:
            raise IllegalStateError(
                f"Cannot unwrap in state {self.state.value}: call generate_transformation() first"
            )
        return self._resampler.apply(table, frame)

    def __str__(self) -> str:
        """String representation of the unwrapper."""
        return f"Unwrapper(state={self.state.value}, model={self._model})"
