#!/usr/bin/env python3
"""
BubbleScope Capture Tool
========================

Captures frames from a BubbleScope fitted capture device (or an image/video
file), unwraps them into panoramas and previews or records the result.

Usage:
    python bubblescope_capture.py --device 0 --unwrap
    python bubblescope_capture.py -f mirror.jpg -rmin 0.2 -rmax 0.65 --stills out/pano
    python bubblescope_capture.py --preset lab --video session --frames 300
"""

import argparse
import sys
from dataclasses import replace
from typing import List, Optional

from bubblescope import CaptureParameters, ResampleBackend, SystemConfig, UnwrapError
from bubblescope.capture import CaptureSession
from bubblescope.preset_manager import PresetManager


# Command line option -> CaptureParameters field
_VALUE_OPTIONS = {
    "device": "capture_device",
    "file": "source_file",
    "inwidth": "original_width",
    "inheight": "original_height",
    "outwidth": "unwrap_width",
    "outheight": "unwrap_height",
    "minradius": "radius_min",
    "maxradius": "radius_max",
    "ucentre": "u_centre",
    "vcentre": "v_centre",
    "offset": "offset_angle",
    "stills": "stills_name",
    "video": "video_name",
    "mjpg": "mjpg_name",
}


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Unwrap BubbleScope annular frames into panoramas",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -d 0 -o                       # Preview original and unwrapped frames
  %(prog)s -f mirror.jpg -s stills/pano  # Unwrap an image, press 's' to save
  %(prog)s -v session -ow 1600 -oh 200   # Record a wide panorama video
  %(prog)s --save-preset lab -uc 0.48    # Store the calibration as a preset

Keys (preview windows):
  ESC - Stop capturing
  S   - Save a still (with --stills)
        """
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument("-d", "--device", type=int, help="Capture device index")
    source.add_argument("-f", "--file", help="Image or video file to unwrap instead of a device")

    parser.add_argument("-iw", "--inwidth", type=int, help="Original image width")
    parser.add_argument("-ih", "--inheight", type=int, help="Original image height")
    parser.add_argument("-ow", "--outwidth", type=int, help="Unwrap image width")
    parser.add_argument("-oh", "--outheight", type=int, help="Unwrap image height (derived when omitted)")
    parser.add_argument("-rmin", "--minradius", type=float, help="Inner radius of the usable band (0..1)")
    parser.add_argument("-rmax", "--maxradius", type=float, help="Outer radius of the usable band (0..1)")
    parser.add_argument("-uc", "--ucentre", type=float, help="Horizontal mirror centre (0..1)")
    parser.add_argument("-vc", "--vcentre", type=float, help="Vertical mirror centre (0..1)")
    parser.add_argument("-a", "--offset", type=float, help="Seam offset angle in degrees")

    parser.add_argument("-o", "--original", action="store_true", help="Show the original image")
    parser.add_argument("-u", "--unwrap", action="store_true", help="Show the unwrapped image (default)")
    parser.add_argument("--no-unwrap", action="store_true", help="Do not show the unwrapped image")

    output_name = SystemConfig().default_output_name
    parser.add_argument("-s", "--stills", nargs="?", const=output_name, metavar="NAME",
                        help=f"Save stills as NAME_0000.jpg, ... (default name: {output_name})")
    parser.add_argument("-v", "--video", nargs="?", const=output_name, metavar="NAME",
                        help="Record XVID video to NAME.avi")
    parser.add_argument("-m", "--mjpg", nargs="?", const=output_name, metavar="NAME",
                        help="Record MJPG video to NAME.avi")

    parser.add_argument("--preset", metavar="NAME", help="Load calibration from a saved preset")
    parser.add_argument("--save-preset", metavar="NAME", help="Save the effective calibration as a preset")
    parser.add_argument("--preset-dir", help="Directory holding calibration presets")

    parser.add_argument("--frames", type=int, default=None, help="Stop after this many frames")
    parser.add_argument(
        "--backend",
        choices=[b.value for b in ResampleBackend],
        default=ResampleBackend.OPENCV.value,
        help="Resampling backend"
    )
    parser.add_argument("--workers", type=int, default=1, help="Row bands unwrapped in parallel")

    args = parser.parse_args(argv)
    if args.workers < 1:
        parser.error(f"--workers must be at least 1, got {args.workers}")
    return args


def build_parameters(args: argparse.Namespace,
                     presets: Optional[PresetManager] = None) -> CaptureParameters:
    """
    Combine defaults, an optional preset and explicit options.

    Explicit options win over the preset, which wins over the defaults.
    """
    params = SystemConfig().defaults

    if args.preset:
        presets = presets or PresetManager(args.preset_dir)
        calibration = presets.load_preset(args.preset)
        if calibration is not None:
            params = params.with_calibration(calibration)

    changes = {
        field: getattr(args, option)
        for option, field in _VALUE_OPTIONS.items()
        if getattr(args, option) is not None
    }
    if args.original:
        changes["show_original"] = True
    if args.unwrap:
        changes["show_unwrap"] = True
    if args.no_unwrap:
        changes["show_unwrap"] = False

    return replace(params, **changes)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    print("🔭 BubbleScope Capture")
    print("=" * 40)

    session = None
    try:
        args = parse_arguments(argv)
        params = build_parameters(args)

        for line in params.describe():
            print(f"   {line}")
        print()

        if args.save_preset:
            PresetManager(args.preset_dir).save_preset(args.save_preset, params.calibration)

        session = CaptureSession.from_parameters(
            params,
            backend=ResampleBackend(args.backend),
            workers=args.workers
        )
        stats = session.run(max_frames=args.frames)

        print(f"\n✅ Captured {stats.frames} frames "
              f"(unwrap avg {stats.average_unwrap_ms:.2f}ms, "
              f"transformation {stats.generation_ms:.1f}ms)")
        return 0

    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user")
        return 1
    except UnwrapError as e:
        print(f"\n❌ {e}")
        return 1
    finally:
        if session is not None:
            session.close()


if __name__ == "__main__":
    sys.exit(main())
