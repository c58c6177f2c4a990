import threading
import time

import cv2
import numpy as np
import pytest

from bubblescope import CaptureParameters, FrameSourceError, Unwrapper
from bubblescope.capture import CaptureSession, CaptureStats
from bubblescope.frame_source import ImageFileSource
from bubblescope.outputs import FrameSink, StillsSink

from conftest import SyntheticSource, annular_frame, make_model


class CollectingSink(FrameSink):
    def __init__(self):
        self.frames = []
        self.closed = False

    def write(self, frame):
        self.frames.append(frame)

    def close(self):
        self.closed = True


def _session(frames, model=None, repeat=False, sinks=None):
    model = model or make_model(width=64, height=48, unwrap_width=120, unwrap_height=20)
    return CaptureSession(SyntheticSource(frames, repeat=repeat), Unwrapper(model), sinks or [CollectingSink()])


def test_start_generates_transformation_from_first_frame():
    session = _session([annular_frame()])
    frame = session.start()

    assert frame.shape == (48, 64, 3)
    assert session.source.is_open()
    assert session.unwrapper.is_ready
    assert session.stats.regenerations == 1


def test_run_processes_frame_budget():
    sink = CollectingSink()
    session = _session([annular_frame()], repeat=True, sinks=[sink])

    stats = session.run(max_frames=5)

    assert stats.frames == 5
    assert stats.regenerations == 1
    assert len(sink.frames) == 5
    assert all(f.shape == (20, 120, 3) for f in sink.frames)
    assert stats.average_unwrap_ms >= 0.0


def test_first_frame_is_not_dropped():
    first = annular_frame()
    second = np.zeros_like(first)
    sink = CollectingSink()
    session = _session([first, second], sinks=[sink])

    session.run(max_frames=2)

    assert sink.frames[0].any()
    assert not sink.frames[1].any()


def test_source_size_change_regenerates_transformation():
    model = make_model(width=640, height=480, unwrap_width=120, unwrap_height=20)
    frames = [annular_frame(), annular_frame(), annular_frame(width=80, height=60)]
    session = _session(frames, model=model)

    stats = session.run(max_frames=3)

    assert stats.regenerations == 2
    assert session.unwrapper.table.source_size == (80, 60)
    assert session.unwrapper.model.original_width == 80


def test_exhausted_source_raises():
    session = _session([annular_frame()])

    with pytest.raises(FrameSourceError, match="exhausted"):
        session.run(max_frames=3)
    assert session.stats.frames == 1


def test_stop_from_another_thread():
    session = _session([annular_frame()], repeat=True)
    session.start()

    def stop_soon():
        while session.stats.frames < 3:
            time.sleep(0.001)
        session.stop()

    stopper = threading.Thread(target=stop_soon)
    stopper.start()
    stats = session.run()
    stopper.join()

    assert session.stopped
    assert stats.frames >= 3


def test_request_still_reaches_stills_sinks(tmp_path):
    stills = StillsSink(str(tmp_path / "pano"))
    other = CollectingSink()
    session = _session([annular_frame()], repeat=True, sinks=[stills, other])

    session.run(max_frames=1)
    assert stills.count == 0

    session.request_still()
    session.run(max_frames=3)

    assert stills.count == 1
    assert (tmp_path / "pano_0000.jpg").exists()


def test_close_releases_everything():
    sink = CollectingSink()
    with _session([annular_frame()], sinks=[sink]) as session:
        session.start()

    assert not session.source.is_open()
    assert sink.closed


def test_from_parameters_headless_stills(tmp_path):
    image = tmp_path / "mirror.png"
    cv2.imwrite(str(image), annular_frame())
    params = CaptureParameters(source_file=str(image), show_unwrap=False,
                               stills_name=str(tmp_path / "pano"))

    with CaptureSession.from_parameters(params) as session:
        assert isinstance(session.source, ImageFileSource)
        assert session.previews == []
        assert session.sinks[0].every_frame
        stats = session.run(max_frames=2)

    assert stats.frames == 2
    assert (tmp_path / "pano_0001.jpg").exists()


def test_from_parameters_with_previews():
    session = CaptureSession.from_parameters(CaptureParameters(show_original=True))

    assert len(session.previews) == 2
    assert session.sinks == []


def test_stats_average_without_frames():
    assert CaptureStats().average_unwrap_ms == 0.0
