"""
Calibration Presets
===================

Presets allow users to save a mirror calibration (centre, radius band, seam
offset and panorama size) once and reuse it across capture sessions. All
presets live in one JSON file, each stamped with its save time.
"""

import datetime
import json
from pathlib import Path
from typing import Any, Dict, Optional

from .config import SystemConfig


DEFAULT_PRESET = "default"

# Values used for any field missing from a stored preset
_FALLBACK = {
    'centre': (0.5, 0.5),
    'radius': (0.25, 0.6),
    'offset_angle': 180.0,
    'unwrap_width': 800,
    'unwrap_height': None,
}


class PresetManager:
    """
    Manages named calibration presets.

    Features:
    - Save calibration parameters as presets
    - Load previously saved presets, falling back to the default preset
    - List, delete and clear presets
    """

    def __init__(self, preset_dir: Optional[str] = None):
        """
        Initialize preset manager.

        Args:
            preset_dir: Directory to store preset files (system default if omitted)
        """
        self.preset_dir = Path(preset_dir or SystemConfig().preset_dir)
        self.preset_dir.mkdir(parents=True, exist_ok=True)

        self.preset_file = self.preset_dir / "calibration_presets.json"

    def save_preset(self, name: str, calibration: Dict[str, Any], make_default: bool = False) -> bool:
        """
        Save calibration parameters as a preset.

        Args:
            name: Preset name
            calibration: Calibration dictionary (``CalibrationModel.to_dict()`` form)
            make_default: Also store the calibration as the default preset

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            presets = self._load_presets_file()

            preset_data = {key: calibration.get(key, value) for key, value in _FALLBACK.items()}
            preset_data['timestamp'] = self._get_timestamp()

            presets[name] = preset_data
            if make_default:
                presets[DEFAULT_PRESET] = dict(preset_data)

            self._write_presets_file(presets)

            if make_default:
                print(f"✅ Preset '{name}' saved and set as default")
            else:
                print(f"✅ Preset '{name}' saved")
            return True

        except (OSError, TypeError, ValueError) as e:
            print(f"❌ Failed to save preset '{name}': {e}")
            return False

    def load_preset(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Load a calibration preset.
        Falls back to the default preset if the named one is not found.

        Args:
            name: Preset name

        Returns:
            Calibration dictionary or None if not found
        """
        presets = self._load_presets_file()

        if name in presets:
            preset = presets[name]
            print(f"✅ Loaded preset '{name}' (saved: {preset.get('timestamp', 'unknown')})")
            return self._to_calibration(preset)

        if DEFAULT_PRESET in presets:
            preset = presets[DEFAULT_PRESET]
            print(f"✅ Loaded default preset in place of '{name}' (saved: {preset.get('timestamp', 'unknown')})")
            return self._to_calibration(preset)

        print(f"ℹ️  No preset found for '{name}'")
        return None

    @staticmethod
    def _to_calibration(preset: Dict[str, Any]) -> Dict[str, Any]:
        centre = preset.get('centre') or _FALLBACK['centre']
        radius = preset.get('radius') or _FALLBACK['radius']
        height = preset.get('unwrap_height')
        return {
            'centre': tuple(float(v) for v in centre),
            'radius': tuple(float(v) for v in radius),
            'offset_angle': float(preset.get('offset_angle', _FALLBACK['offset_angle'])),
            'unwrap_width': int(preset.get('unwrap_width', _FALLBACK['unwrap_width'])),
            'unwrap_height': int(height) if height is not None else None,
        }

    def has_preset(self, name: str) -> bool:
        """Check if a preset with this exact name exists."""
        presets = self._load_presets_file()
        return name in presets and len(presets[name]) > 0

    def has_any_presets(self) -> bool:
        """Check if any presets exist."""
        return self.preset_file.exists() and self.preset_file.stat().st_size > 0

    def list_available_presets(self) -> Dict[str, str]:
        """
        List all available presets with their timestamps.

        Returns:
            Dictionary mapping preset names to timestamps
        """
        return {
            name: data['timestamp']
            for name, data in self._load_presets_file().items()
            if isinstance(data, dict) and 'timestamp' in data
        }

    def delete_preset(self, name: str) -> bool:
        """
        Delete a preset.

        Returns:
            True if deleted, False if it did not exist or could not be written
        """
        presets = self._load_presets_file()

        if name not in presets:
            print(f"ℹ️  No preset found for '{name}'")
            return False

        del presets[name]
        try:
            self._write_presets_file(presets)
        except OSError as e:
            print(f"❌ Failed to delete preset '{name}': {e}")
            return False

        print(f"✅ Deleted preset '{name}'")
        return True

    def clear_all_presets(self) -> bool:
        """Remove the preset file."""
        try:
            if self.preset_file.exists():
                self.preset_file.unlink()
                print("✅ All presets cleared")
            return True

        except OSError as e:
            print(f"❌ Failed to clear presets: {e}")
            return False

    def _load_presets_file(self) -> Dict[str, Any]:
        """
        Load presets from file.

        Returns:
            Dictionary of presets or empty dict if the file is missing or unreadable
        """
        if not self.preset_file.exists():
            return {}

        try:
            with open(self.preset_file, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_presets_file(self, presets: Dict[str, Any]) -> None:
        with open(self.preset_file, 'w') as f:
            json.dump(presets, f, indent=2, ensure_ascii=False)

    @staticmethod
    def _get_timestamp() -> str:
        return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def get_preset_file_path(self) -> str:
        """Get the path to the preset file."""
        return str(self.preset_file.absolute())

