from __future__ import annotations

import dataclasses
import logging
import numbers
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Tuple, Union

import orjson

from crt_reco.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReconstructionConfig:
    r"""
    Startup constants of the CRT/TPC matching pipeline.

    All lengths are in detector units (cm), times in TPC ticks.

    Attributes
    ----------
    y_top, y_mid, y_bot : float
        Calibrated heights of the top, middle and bottom CRT layers.
    layer_tolerance : float
        A hit belongs to a layer iff :math:`|y - y_\text{layer}| < \varepsilon`.
    bottom_match_distance : float
        Maximum 3D distance between a top→mid projection and a bottom hit for
        the bottom hit to complete the track.
    n_height_bins : int
        Number of equal-width bins of :class:`~crt_reco.height_index.HeightIndex`.
    match_distance : float
        Maximum :math:`(y,z)` distance between a track sample and a
        reconstructed point for the point to support the track.
    sample_step : float
        Vertical step of the track walk in :mod:`crt_reco.scoring`.
    y_min, y_max : float
        Vertical extent of the TPC.
    coincidence_window : (float, float)
        Closed interval of accepted peak-time differences between adjacent
        wire planes.
    score_epsilon : float
        Tracks scoring at or below this value are never accepted.
    max_crt_hits, max_wire_hits : int
        Per-event batch capacities; larger batches are truncated.
    slow_score_warn_s : float
        Scoring stages slower than this (seconds) are reported at WARNING.
    """
    y_top: float = 740.0
    y_mid: float = 620.0
    y_bot: float = -360.0
    layer_tolerance: float = 0.1
    bottom_match_distance: float = 600.0
    n_height_bins: int = 40
    match_distance: float = 5.0
    sample_step: float = 5.0
    y_min: float = -200.0
    y_max: float = 200.0
    coincidence_window: Tuple[float, float] = (3.0, 4.0)
    score_epsilon: float = 1e-6
    max_crt_hits: int = 100
    max_wire_hits: int = 5000
    slow_score_warn_s: float = 0.5

    def __post_init__(self) -> None:
        for name in ("n_height_bins", "max_crt_hits", "max_wire_hits"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        if not isinstance(self.coincidence_window, tuple) or len(self.coincidence_window) != 2:
            raise ConfigError(f"coincidence_window must be a (low, high) pair, got {self.coincidence_window!r}")
        if self.n_height_bins < 1:
            raise ConfigError(f"n_height_bins must be >= 1, got {self.n_height_bins}")
        if not self.y_min < self.y_max:
            raise ConfigError(f"y_min ({self.y_min}) must be below y_max ({self.y_max})")
        if self.sample_step <= 0:
            raise ConfigError(f"sample_step must be positive, got {self.sample_step}")
        lo, hi = self.coincidence_window
        if lo > hi:
            raise ConfigError(f"coincidence_window must be (low, high), got {self.coincidence_window}")
        if self.max_crt_hits < 0 or self.max_wire_hits < 0:
            raise ConfigError("hit capacities must be non-negative")

    @property
    def bin_width(self) -> float:
        return (self.y_max - self.y_min) / self.n_height_bins

    def with_overrides(self, overrides: Mapping[str, Any]) -> "ReconstructionConfig":
        r"""
        Return a copy with the given fields replaced.

        Raises
        ------
        ConfigError
            If a key is not a field of :class:`ReconstructionConfig` or a value
            has the wrong type or range.
        """
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        values = dict(overrides)
        try:
            if "coincidence_window" in values:
                values["coincidence_window"] = tuple(float(v) for v in values["coincidence_window"])
            return dataclasses.replace(self, **values)
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e


DEFAULT_CONFIG = ReconstructionConfig()


def load_config(
    config_path: Union[str, Path, None],
    base: ReconstructionConfig = DEFAULT_CONFIG,
) -> ReconstructionConfig:
    r"""
    Load a JSON object of overrides with :mod:`orjson` and apply it to ``base``.

    ``None`` or a missing file returns ``base`` unchanged.

    Raises
    ------
    ConfigError
        If the file cannot be parsed, is not a JSON object, or carries
        unknown/invalid keys.
    """
    if config_path is None:
        return base
    path = Path(config_path)
    if not path.is_file():
        logger.info("No config file at %s; using defaults", path)
        return base
    try:
        raw = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a JSON object, got {type(raw).__name__}")
    cfg = base.with_overrides(raw)
    logger.debug("Loaded config from %s: %s", path, cfg)
    return cfg
