import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig, load_config
from crt_reco.errors import ConfigError


def test_defaults():
    cfg = ReconstructionConfig()
    assert cfg.layer_tolerance == 0.1
    assert cfg.bottom_match_distance == 600.0
    assert cfg.match_distance == 5.0 and cfg.sample_step == 5.0
    assert (cfg.y_min, cfg.y_max) == (-200.0, 200.0)
    assert cfg.coincidence_window == (3.0, 4.0)
    assert cfg.score_epsilon == 1e-6
    assert cfg.bin_width == pytest.approx(10.0)


def test_overrides_and_unknown_keys():
    cfg = DEFAULT_CONFIG.with_overrides({"n_height_bins": 80, "coincidence_window": [2, 5]})
    assert cfg.n_height_bins == 80
    assert cfg.coincidence_window == (2.0, 5.0)
    with pytest.raises(ConfigError):
        DEFAULT_CONFIG.with_overrides({"not_a_field": 1})


@pytest.mark.parametrize("kwargs", [
    {"n_height_bins": 0},
    {"y_min": 10.0, "y_max": 10.0},
    {"sample_step": 0.0},
    {"coincidence_window": (4.0, 3.0)},
    {"max_crt_hits": -1},
])
def test_invalid_values(kwargs):
    with pytest.raises(ConfigError):
        ReconstructionConfig(**kwargs)


def test_load_config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"y_top": 800.5, "match_distance": 3}', encoding="utf-8")
    cfg = load_config(path)
    assert cfg.y_top == 800.5 and cfg.match_distance == 3
    assert cfg.y_mid == DEFAULT_CONFIG.y_mid


def test_missing_file_returns_base(tmp_path):
    assert load_config(tmp_path / "absent.json") is DEFAULT_CONFIG
    assert load_config(None) is DEFAULT_CONFIG


@pytest.mark.parametrize("text", ["{not json", "[1, 2]", '{"bogus": 1}'])
def test_bad_files(tmp_path, text):
    path = tmp_path / "config.json"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize("overrides", [
    {"coincidence_window": [3]},
    {"coincidence_window": 3},
    {"coincidence_window": ["a", "b"]},
    {"max_crt_hits": 2.5},
    {"n_height_bins": True},
])
def test_malformed_override_values(overrides):
    with pytest.raises(ConfigError):
        DEFAULT_CONFIG.with_overrides(overrides)


def test_malformed_value_in_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"max_wire_hits": 12.5}', encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)
