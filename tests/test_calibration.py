import numpy as np
import pytest

from bubblescope import CalibrationModel, ConfigurationError
from bubblescope.calibration import derive_unwrap_height

from conftest import make_model


def _field_error(model: CalibrationModel) -> str:
    with pytest.raises(ConfigurationError) as excinfo:
        model.validate()
    return excinfo.value.field


def test_new_model_is_invalid():
    model = CalibrationModel()
    assert not model.is_valid()
    assert _field_error(model) == "original_width"


def test_model_becomes_valid_once_required_fields_are_set():
    model = CalibrationModel()
    model.set_original_size(640, 480)
    assert _field_error(model) == "u_centre"
    model.set_centre(0.5, 0.5)
    assert _field_error(model) == "radius_min"
    model.set_radius_range(0.25, 0.6)
    assert _field_error(model) == "unwrap_width"
    model.set_unwrap_width(800)
    assert model.is_valid()


def test_setters_store_values_without_validating():
    model = CalibrationModel().set_radius_range(0.6, 0.2).set_centre(2.0, -1.0)
    assert model.radius_min == 0.6
    assert model.u_centre == 2.0
    assert not model.is_valid()


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"width": 0}, "original_width"),
        ({"height": -480}, "original_height"),
        ({"centre": (1.5, 0.5)}, "u_centre"),
        ({"centre": (0.5, -0.1)}, "v_centre"),
        ({"radius": (0.6, 0.25)}, "radius_min"),
        ({"radius": (0.3, 0.3)}, "radius_min"),
        ({"radius": (-0.1, 0.5)}, "radius_min"),
        ({"radius": (0.2, 1.5)}, "radius_max"),
        ({"offset": -360.0}, "offset_angle"),
        ({"offset": 400.0}, "offset_angle"),
        ({"unwrap_width": 0}, "unwrap_width"),
        ({"unwrap_height": 0}, "unwrap_height"),
    ],
)
def test_out_of_range_fields_are_reported(kwargs, field):
    model = make_model(**kwargs)
    assert not model.is_valid()
    assert _field_error(model) == field


def test_non_integer_sizes_are_rejected():
    assert _field_error(make_model(width=640.5)) == "original_width"
    assert _field_error(make_model(unwrap_width=True)) == "unwrap_width"
    assert _field_error(make_model(centre=(float("nan"), 0.5))) == "u_centre"


def test_offset_angle_range_is_half_open():
    assert make_model(offset=360.0).is_valid()
    assert make_model(offset=-359.9).is_valid()


def test_numpy_scalars_are_accepted():
    model = make_model(width=np.int64(640), height=np.int32(480), centre=(np.float32(0.5), 0.5))
    assert model.is_valid()


def test_configuration_error_is_a_value_error():
    with pytest.raises(ValueError):
        CalibrationModel().validate()


def test_derived_unwrap_height_follows_band_aspect():
    # 800 * 0.35 / (pi * 0.85) = 104.86
    assert derive_unwrap_height(800, 0.25, 0.6) == 105
    assert derive_unwrap_height(10, 0.5, 0.5001) == 1

    model = make_model(unwrap_height=None)
    assert model.resolved_unwrap_height() == 105
    assert make_model(unwrap_height=64).resolved_unwrap_height() == 64


def test_freeze_returns_validated_snapshot(scenario_model):
    params = scenario_model.freeze()
    assert params.original_size == (640, 480)
    assert params.unwrap_size == (800, 100)
    assert params.offset_angle == 180.0

    scenario_model.set_offset_angle(90.0)
    assert params.offset_angle == 180.0


def test_freeze_rejects_invalid_model():
    with pytest.raises(ConfigurationError):
        CalibrationModel().freeze()


def test_dict_round_trip_keeps_calibration(scenario_model):
    restored = CalibrationModel.from_dict(scenario_model.to_dict())
    restored.set_original_size(640, 480)
    assert restored == scenario_model
