import cv2
import pytest

from bubblescope import CaptureParameters
from bubblescope.preset_manager import PresetManager
from bubblescope_capture import build_parameters, main, parse_arguments

from conftest import annular_frame, make_model


def test_defaults_without_options():
    params = build_parameters(parse_arguments([]))

    assert params == CaptureParameters()
    assert params.show_unwrap
    assert not params.show_original


def test_options_map_onto_parameters():
    args = parse_arguments([
        "-d", "2", "-iw", "1280", "-ih", "960", "-ow", "1600", "-oh", "200",
        "-rmin", "0.1", "-rmax", "0.9", "-uc", "0.45", "-vc", "0.55", "-a", "90",
        "-o", "--no-unwrap", "-s", "stills/pano", "-m", "clip",
    ])
    params = build_parameters(args)

    assert params.capture_device == 2
    assert (params.original_width, params.original_height) == (1280, 960)
    assert (params.unwrap_width, params.unwrap_height) == (1600, 200)
    assert (params.radius_min, params.radius_max) == (0.1, 0.9)
    assert (params.u_centre, params.v_centre) == (0.45, 0.55)
    assert params.offset_angle == 90.0
    assert params.show_original and not params.show_unwrap
    assert params.stills_name == "stills/pano"
    assert params.mjpg_name == "clip"
    assert params.video_name is None


def test_device_and_file_are_exclusive():
    with pytest.raises(SystemExit):
        parse_arguments(["-d", "0", "-f", "mirror.jpg"])


def test_explicit_options_override_preset(tmp_path):
    presets = PresetManager(str(tmp_path))
    presets.save_preset("lab", make_model(centre=(0.4, 0.6), offset=30.0).to_dict())

    args = parse_arguments(["--preset", "lab", "-a", "45", "--preset-dir", str(tmp_path)])
    params = build_parameters(args, presets)

    assert (params.u_centre, params.v_centre) == (0.4, 0.6)
    assert params.unwrap_height == 100
    assert params.offset_angle == 45.0


def test_main_unwraps_image_to_stills(tmp_path, capsys):
    image = tmp_path / "mirror.png"
    cv2.imwrite(str(image), annular_frame(width=160, height=120))
    stills = tmp_path / "out" / "pano"

    code = main(["-f", str(image), "--frames", "2", "--no-unwrap", "-s", str(stills), "-ow", "200"])

    assert code == 0
    assert (tmp_path / "out" / "pano_0000.jpg").exists()
    assert (tmp_path / "out" / "pano_0001.jpg").exists()
    panorama = cv2.imread(str(tmp_path / "out" / "pano_0000.jpg"))
    assert panorama.shape[1] == 200
    assert "Captured 2 frames" in capsys.readouterr().out


def test_main_saves_preset(tmp_path):
    image = tmp_path / "mirror.png"
    cv2.imwrite(str(image), annular_frame())

    code = main(["-f", str(image), "--frames", "1", "--no-unwrap", "-a", "12",
                 "--save-preset", "bench", "--preset-dir", str(tmp_path / "presets")])

    assert code == 0
    assert PresetManager(str(tmp_path / "presets")).load_preset("bench")['offset_angle'] == 12.0


def test_main_reports_invalid_calibration(tmp_path, capsys):
    image = tmp_path / "mirror.png"
    cv2.imwrite(str(image), annular_frame())

    code = main(["-f", str(image), "--frames", "1", "--no-unwrap", "-rmin", "0.7", "-rmax", "0.3"])

    assert code == 1
    assert "radius_min" in capsys.readouterr().out


def test_main_reports_missing_file(tmp_path):
    assert main(["-f", str(tmp_path / "missing.png"), "--frames", "1", "--no-unwrap"]) == 1


def test_output_options_without_name_use_default_name():
    params = build_parameters(parse_arguments(["-v", "-s"]))

    assert params.video_name == "BubbleScope_Capture"
    assert params.stills_name == "BubbleScope_Capture"
    assert params.mjpg_name is None


@pytest.mark.parametrize("workers", ["0", "-2"])
def test_workers_below_one_are_rejected(workers, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--workers", workers, "--frames", "1"])

    assert excinfo.value.code == 2
    assert "--workers must be at least 1" in capsys.readouterr().err
