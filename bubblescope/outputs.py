"""
Output Sinks
============

Consumers of unwrapped frames: an on-screen preview window, video file
writers and a numbered still image writer.
"""

from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import cv2

from .config import OutputMode, SystemConfig
from .errors import FrameSourceError


class FrameSink:
    """Base class for frame consumers."""

    def write(self, frame: np.ndarray) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> 'FrameSink':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class PreviewWindow(FrameSink):
    """
    OpenCV window showing the latest frame.

    Features:
    - Optional downscaling to a maximum window size
    - Non-blocking key polling
    """

    def __init__(self, title: str, max_size: Optional[Tuple[int, int]] = None):
        """
        Initialize preview window.

        Args:
            title: Window title
            max_size: Maximum displayed size (width, height)
        """
        self.title = title
        self.max_size = max_size
        self._shown = False

    def write(self, frame: np.ndarray) -> None:
        if frame is None or frame.size == 0:
            print(f"⚠️  {self.title}: cannot display empty frame")
            return

        display = frame
        if self.max_size:
            h, w = frame.shape[:2]
            max_w, max_h = self.max_size
            if w > max_w or h > max_h:
                scale = min(max_w / w, max_h / h)
                display = cv2.resize(frame, (max(1, int(w * scale)), max(1, int(h * scale))))

        cv2.imshow(self.title, display)
        self._shown = True

    @staticmethod
    def poll_key(delay_ms: int = 1) -> int:
        """Pump the GUI event loop and return the pressed key (-1 if none)."""
        key = cv2.waitKey(delay_ms)
        return key & 0xFF if key >= 0 else -1

    def close(self) -> None:
        if not self._shown:
            return
        self._shown = False
        try:
            cv2.destroyWindow(self.title)
        except cv2.error:
            pass  # Window doesn't exist or already destroyed


class VideoFileSink(FrameSink):
    """Video file writer, opened lazily once the first frame size is known."""

    def __init__(self, name: str, mode: OutputMode = OutputMode.VIDEO,
                 frame_rate: Optional[float] = None):
        """
        Initialize video sink.

        Args:
            name: Output file name, the container extension is added if missing
            mode: VIDEO (XVID) or MJPG encoding
            frame_rate: Frames per second written into the container
        """
        config = SystemConfig()
        self.mode = mode
        self.fourcc = config.codec_for(mode)
        self.frame_rate = frame_rate or config.default_frame_rate

        path = Path(name)
        if not path.suffix:
            path = path.with_suffix(config.video_extension)
        self.path = path

        self._writer: Optional[cv2.VideoWriter] = None
        self._frame_size: Optional[Tuple[int, int]] = None
        self.frames_written = 0

    def _open(self, frame: np.ndarray) -> None:
        height, width = frame.shape[:2]
        is_color = frame.ndim == 3 and frame.shape[2] > 1
        writer = cv2.VideoWriter(
            str(self.path),
            cv2.VideoWriter_fourcc(*self.fourcc),
            self.frame_rate,
            (width, height),
            is_color
        )
        if not writer.isOpened():
            raise FrameSourceError(f"Cannot open {self.fourcc} video writer: {self.path}")

        self._writer = writer
        self._frame_size = (width, height)
        print(f"✅ Recording {self.mode.value} to {self.path} ({width}x{height} @ {self.frame_rate:.1f}fps)")

    def write(self, frame: np.ndarray) -> None:
        if self._writer is None:
            self._open(frame)

        height, width = frame.shape[:2]
        if (width, height) != self._frame_size:
            raise FrameSourceError(
                f"Frame size {width}x{height} differs from video size "
                f"{self._frame_size[0]}x{self._frame_size[1]}"
            )
        if frame.dtype != np.uint8:
            frame = np.clip(frame, 0, 255).astype(np.uint8)

        try:
            self._writer.write(frame)
        except cv2.error as e:
            raise FrameSourceError(f"Video write failed: {e}")
        self.frames_written += 1

    @property
    def is_open(self) -> bool:
        return self._writer is not None

    def close(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None
            print(f"✅ Saved {self.frames_written} frames to {self.path}")


class StillsSink(FrameSink):
    """
    Numbered still image writer.

    With ``every_frame`` false (the default) frames are only saved after
    :meth:`capture_next` was called, e.g. on a keypress.
    """

    def __init__(self, name: str, every_frame: bool = False, extension: Optional[str] = None):
        config = SystemConfig()
        self.base = Path(name)
        self.extension = extension or config.still_extension
        self.every_frame = every_frame
        self.count = 0
        self._pending = False

    def capture_next(self) -> None:
        """Save the next written frame."""
        self._pending = True

    def next_path(self) -> Path:
        """Path the next still will be written to."""
        return self.base.with_name(f"{self.base.name}_{self.count:04d}{self.extension}")

    def write(self, frame: np.ndarray) -> None:
        if not (self.every_frame or self._pending):
            return
        self._pending = False

        path = self.next_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            ok = cv2.imwrite(str(path), frame)
        except cv2.error as e:
            raise FrameSourceError(f"Still write failed: {e}")
        if not ok:
            raise FrameSourceError(f"Cannot write still image: {path}")

        self.count += 1
        print(f"✅ Still saved: {path}")


def create_output_sink(mode: OutputMode, name: str, frame_rate: Optional[float] = None,
                       every_frame: bool = False) -> FrameSink:
    """
    Sink for an output mode and file name.

    ``every_frame`` only applies to stills; video sinks record every frame.
    """
    if mode is OutputMode.STILLS:
        return StillsSink(name, every_frame=every_frame)
    return VideoFileSink(name, mode, frame_rate)
