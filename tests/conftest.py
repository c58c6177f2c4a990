"""
Shared pytest fixtures
"""

import numpy as np
import pytest

from bubblescope import CalibrationModel, FrameSourceError, Unwrapper
from bubblescope.frame_source import FrameSource


def make_model(width=640, height=480, unwrap_width=800, unwrap_height=100,
               centre=(0.5, 0.5), radius=(0.25, 0.6), offset=180.0) -> CalibrationModel:
    return (CalibrationModel()
            .set_original_size(width, height)
            .set_centre(*centre)
            .set_radius_range(*radius)
            .set_offset_angle(offset)
            .set_unwrap_width(unwrap_width)
            .set_unwrap_height(unwrap_height))


def annular_frame(width: int = 64, height: int = 48, channels: int = 3) -> np.ndarray:
    """Smooth synthetic frame: a radial ramp plus a horizontal gradient."""
    yy, xx = np.mgrid[0:height, 0:width].astype(np.float64)
    r = np.hypot((xx - width / 2) / (width / 2), (yy - height / 2) / (height / 2))
    base = np.clip(180 * r + 40 * xx / width, 0, 255)
    if channels == 0:
        return base.astype(np.uint8)
    layers = [np.clip(base + 10 * c, 0, 255) for c in range(channels)]
    return np.stack(layers, axis=2).astype(np.uint8)


class SyntheticSource(FrameSource):
    """In-memory frame source replaying a list of frames."""

    def __init__(self, frames, repeat: bool = False):
        self.frames = list(frames)
        self.repeat = repeat
        self.index = 0
        self.opened = False
        self.open_count = 0

    def open(self, target=None):
        self.opened = True
        self.open_count += 1
        return self

    def close(self):
        self.opened = False

    def is_open(self):
        return self.opened

    def grab(self):
        if not self.opened:
            raise FrameSourceError("synthetic source is not open")
        if self.index >= len(self.frames):
            if not self.repeat:
                raise FrameSourceError("synthetic source exhausted")
            self.index = 0
        frame = self.frames[self.index]
        self.index += 1
        return frame.copy()

    @property
    def width(self):
        return self.frames[min(self.index, len(self.frames) - 1)].shape[1]

    @property
    def height(self):
        return self.frames[min(self.index, len(self.frames) - 1)].shape[0]


@pytest.fixture
def scenario_model():
    return make_model()


@pytest.fixture
def small_model():
    return make_model(width=64, height=48, unwrap_width=120, unwrap_height=20, offset=0.0)


@pytest.fixture
def ready_unwrapper(small_model):
    unwrapper = Unwrapper(small_model)
    unwrapper.generate_transformation()
    return unwrapper
