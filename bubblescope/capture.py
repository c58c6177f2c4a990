"""
Capture Session
===============

Driver loop of the capture tool: grab a frame, unwrap it, hand the result
to the preview windows and output sinks, repeat until stopped.
"""

import threading
import time
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .config import CaptureParameters, SystemConfig
from .frame_source import CaptureDeviceSource, FrameSource, create_frame_source
from .outputs import FrameSink, PreviewWindow, StillsSink, VideoFileSink, create_output_sink
from .resampler import ResampleBackend, frame_size
from .unwrapper import Unwrapper


@dataclass
class CaptureStats:
    """Statistics from the capture loop."""
    frames: int = 0
    regenerations: int = 0
    last_unwrap_ms: float = 0.0
    total_unwrap_ms: float = 0.0
    generation_ms: float = 0.0

    @property
    def average_unwrap_ms(self) -> float:
        return self.total_unwrap_ms / self.frames if self.frames else 0.0


class CaptureSession:
    """
    Runs the acquire -> unwrap -> output loop for one frame source.

    The loop is stopped cooperatively: :meth:`stop` (from any thread), ESC in
    a preview window, or an exhausted frame budget end it after the current
    frame. A change of the source frame size regenerates the transformation
    before the frame is unwrapped.
    """

    def __init__(self,
                 source: FrameSource,
                 unwrapper: Unwrapper,
                 sinks: Optional[List[FrameSink]] = None,
                 original_preview: Optional[PreviewWindow] = None,
                 unwrap_preview: Optional[PreviewWindow] = None):
        """
        Initialize capture session.

        Args:
            source: Frame source (opened by :meth:`start` if needed)
            unwrapper: Configured unwrapper
            sinks: Consumers of unwrapped frames
            original_preview: Window showing the raw frames
            unwrap_preview: Window showing the unwrapped frames
        """
        self.config = SystemConfig()
        self.source = source
        self.unwrapper = unwrapper
        self.sinks: List[FrameSink] = list(sinks or [])
        self.original_preview = original_preview
        self.unwrap_preview = unwrap_preview

        self.stats = CaptureStats()
        self._stop_event = threading.Event()
        self._pending_frame: Optional[np.ndarray] = None

    @classmethod
    def from_parameters(cls,
                        params: CaptureParameters,
                        backend: ResampleBackend = ResampleBackend.OPENCV,
                        workers: int = 1) -> 'CaptureSession':
        """
        Build a complete session from capture parameters.

        Args:
            params: Capture parameters
            backend: Resampling backend
            workers: Row bands unwrapped in parallel

        Returns:
            Session ready to :meth:`run`
        """
        config = SystemConfig()
        source = create_frame_source(params)
        unwrapper = Unwrapper.from_parameters(params, backend, workers)
        # Without a preview window there is no keypress, so stills are taken every frame
        headless = not (params.show_original or params.show_unwrap)
        sinks = [
            create_output_sink(mode, name, every_frame=headless)
            for mode, name in params.outputs.items()
        ]

        return cls(
            source,
            unwrapper,
            sinks,
            original_preview=PreviewWindow(config.original_window) if params.show_original else None,
            unwrap_preview=PreviewWindow(config.unwrap_window) if params.show_unwrap else None,
        )

    @property
    def previews(self) -> List[PreviewWindow]:
        return [w for w in (self.original_preview, self.unwrap_preview) if w is not None]

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to finish after the current frame."""
        self._stop_event.set()

    def request_still(self) -> None:
        """Save the next unwrapped frame in every stills sink."""
        for sink in self.sinks:
            if isinstance(sink, StillsSink):
                sink.capture_next()

    def start(self) -> np.ndarray:
        """
        Open the source and prepare the transformation from an initial frame.

        Returns:
            The initial frame (it is also the first frame processed by :meth:`run`)

        Raises:
            FrameSourceError: If the source cannot be opened or delivers no frame
            ConfigurationError: If the calibration is invalid
        """
        if not self.source.is_open():
            self.source.open()

        # Video sinks not opened yet record at the device frame rate
        if isinstance(self.source, CaptureDeviceSource):
            rate = self.source.frame_rate
            if rate > 0:
                for sink in self.sinks:
                    if isinstance(sink, VideoFileSink) and not sink.is_open:
                        sink.frame_rate = rate

        frame = self.source.grab()
        self._ensure_transformation(frame)
        self._pending_frame = frame
        return frame

    def _ensure_transformation(self, frame: np.ndarray) -> None:
        width, height = frame_size(frame)
        table = self.unwrapper.table
        if table is not None and table.source_size == (width, height):
            return

        model = self.unwrapper.model
        if (model.original_width, model.original_height) != (width, height):
            self.unwrapper.set_original_size(width, height)

        start = time.time()
        table = self.unwrapper.generate_transformation()
        self.stats.generation_ms = (time.time() - start) * 1000
        self.stats.regenerations += 1

        out_w, out_h = table.size
        print(f"✅ Transformation generated: {width}x{height} -> {out_w}x{out_h} "
              f"({self.stats.generation_ms:.1f}ms)")

    def process_frame(self, frame: np.ndarray) -> np.ndarray:
        """
        Unwrap one frame and hand it to previews and sinks.

        Args:
            frame: Raw source frame

        Returns:
            Unwrapped frame
        """
        self._ensure_transformation(frame)

        start = time.time()
        unwrapped = self.unwrapper.unwrap(frame)
        elapsed_ms = (time.time() - start) * 1000

        self.stats.frames += 1
        self.stats.last_unwrap_ms = elapsed_ms
        self.stats.total_unwrap_ms += elapsed_ms

        if self.original_preview is not None:
            self.original_preview.write(frame)
        if self.unwrap_preview is not None:
            self.unwrap_preview.write(unwrapped)
        for sink in self.sinks:
            sink.write(unwrapped)

        return unwrapped

    def _handle_keys(self) -> None:
        if not self.previews:
            return
        key = PreviewWindow.poll_key()
        if key == self.config.exit_key:
            self.stop()
        elif key == self.config.still_key:
            self.request_still()

    def run(self, max_frames: Optional[int] = None) -> CaptureStats:
        """
        Run the capture loop.

        Args:
            max_frames: Stop after this many frames (None runs until stopped)

        Returns:
            Capture statistics
        """
        if self._pending_frame is None:
            self.start()

        while not self.stopped:
            if max_frames is not None and self.stats.frames >= max_frames:
                break

            if self._pending_frame is not None:
                frame, self._pending_frame = self._pending_frame, None
            else:
                frame = self.source.grab()

            self.process_frame(frame)
            self._handle_keys()

        return self.stats

    def close(self) -> None:
        """Release the source, sinks and windows."""
        self.source.close()
        for sink in self.sinks:
            sink.close()
        for window in self.previews:
            window.close()

    def __enter__(self) -> 'CaptureSession':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
