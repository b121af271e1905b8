"""Configuration of the decorrelation pipeline.

The defaults below belong to the laser decorrelation test bench: the
calibration transform maps millimetres to pixels and the reference region is
the 128x128 block centred in a 728x544 frame.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path

from decorr.errors import ConfigError
from decorr.utils import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_IMAGES_ROOT = Path("../laser_decorrelation_images")
DEFAULT_RESULTS_ROOT = Path("../laser_decorrelation_results")

_TOP_LEVEL_KEYS = {
    "images_root", "results_root", "ncc_images_root", "transform", "roi", "frame",
    "reference_index", "frame_pattern", "calibration_mode", "continue_on_error",
}
_SCALAR_TYPES = {
    "reference_index": int,
    "frame_pattern": str,
    "calibration_mode": bool,
    "continue_on_error": bool,
}


@dataclass(frozen=True)
class Transform:
    """Linear map from millimetres to pixels, ``[[txx, txy], [tyx, tyy]]``."""

    txx: float = -256.75
    txy: float = 2.5
    tyx: float = 3.5
    tyy: float = 260.5

    @property
    def determinant(self) -> float:
        return self.txx * self.tyy - self.txy * self.tyx

    def to_mm(self, shift_x: float, shift_y: float) -> tuple[float, float]:
        """Convert a pixel shift to a physical displacement.

        :param shift_x: shift along the columns in pixels
        :param shift_y: shift along the rows in pixels
        :return: (x, y) displacement in millimetres
        """
        det = self.determinant
        x_mm = (shift_x * self.tyy - shift_y * self.txy) / det
        y_mm = (shift_y * self.txx - shift_x * self.tyx) / det
        return x_mm, y_mm

    def to_pixels(self, x_mm: float, y_mm: float) -> tuple[float, float]:
        """Convert a physical displacement back to a pixel shift.

        :param x_mm: displacement along x in millimetres
        :param y_mm: displacement along y in millimetres
        :return: (columns, rows) shift in pixels
        """
        return (self.txx * x_mm + self.txy * y_mm,
                self.tyx * x_mm + self.tyy * y_mm)


@dataclass(frozen=True)
class RoiGeometry:
    """Size and top left corner of the reference region."""

    width: int = 128
    height: int = 128
    top_left_x: int = 300
    top_left_y: int = 208


@dataclass(frozen=True)
class PipelineConfig:
    images_root: Path = DEFAULT_IMAGES_ROOT
    results_root: Path = DEFAULT_RESULTS_ROOT
    ncc_images_root: Path | None = None
    transform: Transform = field(default_factory=Transform)
    roi: RoiGeometry = field(default_factory=RoiGeometry)
    frame_width: int = 728
    frame_height: int = 544
    reference_index: int = 0
    frame_pattern: str = "*"
    calibration_mode: bool = False
    continue_on_error: bool = True

    def __post_init__(self) -> None:
        validate(self)

    def with_paths(self, images_root: str | Path | None = None,
                   results_root: str | Path | None = None,
                   ncc_images_root: str | Path | None = None) -> PipelineConfig:
        """Return a copy with the given paths replaced, ``None`` keeps the current value."""
        changes = {}
        if images_root is not None:
            changes["images_root"] = Path(images_root)
        if results_root is not None:
            changes["results_root"] = Path(results_root)
        if ncc_images_root is not None:
            changes["ncc_images_root"] = Path(ncc_images_root)
        return replace(self, **changes)


def validate(config: PipelineConfig) -> None:
    """Check geometry and calibration constants.

    :param config: configuration to check
    :raises ConfigError: if a size is not positive, an offset is negative,
                         the region does not fit the expected frame or the
                         transform is singular
    """
    roi = config.roi
    if roi.width <= 0 or roi.height <= 0:
        raise ConfigError(f"ROI size must be positive, got {roi.width}x{roi.height}")
    if roi.top_left_x < 0 or roi.top_left_y < 0:
        raise ConfigError(f"ROI offset must be non-negative, got ({roi.top_left_x}, {roi.top_left_y})")
    if config.frame_width <= 0 or config.frame_height <= 0:
        raise ConfigError(f"Frame size must be positive, got {config.frame_width}x{config.frame_height}")
    if (roi.top_left_x + roi.width > config.frame_width
            or roi.top_left_y + roi.height > config.frame_height):
        raise ConfigError("ROI does not fit inside the expected frame size")
    if config.transform.determinant == 0:
        raise ConfigError("Transform is singular (Txx*Tyy - Txy*Tyx == 0)")
    if config.reference_index < 0:
        raise ConfigError(f"reference_index must be non-negative, got {config.reference_index}")
    if not config.frame_pattern:
        raise ConfigError("frame_pattern must not be empty")


def _section(data: dict, key: str) -> dict:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def config_from_dict(data: dict | None) -> PipelineConfig:
    """Build a configuration from a dictionary as read from YAML.

    :param data: mapping with the keys of the YAML schema, missing keys keep their defaults
    :return: validated configuration
    :raises ConfigError: on unknown keys, malformed sections or invalid values
    """
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")

    kwargs = {}
    for key in ("images_root", "results_root", "ncc_images_root"):
        if data.get(key) is not None:
            kwargs[key] = Path(data[key])
    for key, kind in _SCALAR_TYPES.items():
        if key not in data:
            continue
        value = data[key]
        # bool is an int subclass, a YAML "true" must not pass as an index
        if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
            raise ConfigError(f"'{key}' must be of type {kind.__name__}, got {value!r}")
        kwargs[key] = value

    try:
        kwargs["transform"] = Transform(**{k: float(v) for k, v in _section(data, "transform").items()})
        kwargs["roi"] = RoiGeometry(**{k: int(v) for k, v in _section(data, "roi").items()})
        frame = _section(data, "frame")
        if set(frame) - {"width", "height"}:
            raise ConfigError(f"Unknown frame keys: {sorted(set(frame) - {'width', 'height'})}")
        if "width" in frame:
            kwargs["frame_width"] = int(frame["width"])
        if "height" in frame:
            kwargs["frame_height"] = int(frame["height"])
    except (TypeError, ValueError) as e:
        raise ConfigError(str(e)) from e
    try:
        return PipelineConfig(**kwargs)
    except TypeError as e:
        raise ConfigError(str(e)) from e


def load_config(path: str | Path | None = None) -> PipelineConfig:
    """Load the pipeline configuration, falling back to the defaults.

    :param path: optional path to a YAML file
    :return: validated configuration
    """
    if path is None:
        return PipelineConfig()
    logger.info(f"Loading configuration from {path}")
    return config_from_dict(load_yaml(path))
