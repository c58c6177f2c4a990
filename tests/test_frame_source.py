import cv2
import numpy as np
import pytest

from bubblescope import CaptureParameters, FrameSourceError
from bubblescope.frame_source import CaptureDeviceSource, ImageFileSource, create_frame_source

from conftest import annular_frame


@pytest.fixture
def image_path(tmp_path):
    path = tmp_path / "mirror.png"
    assert cv2.imwrite(str(path), annular_frame())
    return path


def test_image_source_reads_frames(image_path):
    with ImageFileSource(str(image_path)) as source:
        assert source.is_open()
        assert source.size == (64, 48)
        frame = source.grab()
        np.testing.assert_array_equal(frame, annular_frame())

    assert not source.is_open()


def test_image_source_returns_independent_copies(image_path):
    source = ImageFileSource().open(str(image_path))
    first = source.grab()
    first[...] = 0

    assert source.grab().any()


def test_image_source_errors(tmp_path, image_path):
    with pytest.raises(FrameSourceError, match="not found"):
        ImageFileSource(str(tmp_path / "missing.png")).open()

    junk = tmp_path / "junk.png"
    junk.write_bytes(b"not an image")
    with pytest.raises(FrameSourceError, match="Cannot read"):
        ImageFileSource(str(junk)).open()

    with pytest.raises(FrameSourceError):
        ImageFileSource().open()

    closed = ImageFileSource(str(image_path))
    with pytest.raises(FrameSourceError):
        closed.grab()
    with pytest.raises(FrameSourceError):
        _ = closed.width


def test_frame_source_errors_are_io_errors(tmp_path):
    with pytest.raises(IOError):
        ImageFileSource(str(tmp_path / "missing.png")).open()


def test_capture_source_failure_to_open(tmp_path):
    source = CaptureDeviceSource(str(tmp_path / "missing.avi"))

    with pytest.raises(FrameSourceError, match="Can't open"):
        source.open()
    assert not source.is_open()
    with pytest.raises(FrameSourceError, match="not open"):
        source.grab()


def test_capture_size_request_is_kept_until_open():
    source = CaptureDeviceSource(3).set_capture_size(1280, 720)

    assert source._requested_size == (1280, 720)
    assert "3" in str(source)


def test_factory_picks_source_variant(image_path):
    image = create_frame_source(CaptureParameters(source_file=str(image_path)))
    assert isinstance(image, ImageFileSource)

    video = create_frame_source(CaptureParameters(source_file="clip.avi"))
    assert isinstance(video, CaptureDeviceSource)
    assert video.target == "clip.avi"

    device = create_frame_source(CaptureParameters(capture_device=2, original_width=1280,
                                                   original_height=960))
    assert isinstance(device, CaptureDeviceSource)
    assert device.target == 2
    assert device._requested_size == (1280, 960)
