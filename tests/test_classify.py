import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import numpy as np

from crt_reco.config import ReconstructionConfig
from crt_reco.hits import CRTHit, classify_crt_hits


def test_classify_by_layer_height():
    cfg = ReconstructionConfig()
    hits = [
        CRTHit(1.0, cfg.y_top + 0.05, 0.0, 0.0),
        CRTHit(2.0, cfg.y_mid - 0.05, 0.0, 0.0),
        CRTHit(3.0, cfg.y_bot, 0.0, 0.0),
        CRTHit(4.0, 12.0, 0.0, 0.0),
    ]
    out = classify_crt_hits(hits, cfg)
    assert [h.x for h in out.top] == [1.0]
    assert [h.x for h in out.mid] == [2.0]
    # hits near no calibrated height fall through to the bottom layer
    assert [h.x for h in out.bottom] == [3.0, 4.0]


def test_hits_within_tolerance_of_top_are_always_top():
    cfg = ReconstructionConfig()
    ys = cfg.y_top + np.linspace(-0.099, 0.099, 41)
    out = classify_crt_hits([CRTHit(0.0, float(y), 0.0, 0.0) for y in ys], cfg)
    assert len(out.top) == len(ys)
    assert out.mid == () and out.bottom == ()


def test_tolerance_is_strict():
    cfg = ReconstructionConfig()
    out = classify_crt_hits([CRTHit(0.0, cfg.y_top + 0.2, 0.0, 0.0)], cfg)
    assert out.top == ()
    assert len(out.bottom) == 1


def test_every_hit_lands_in_exactly_one_layer():
    cfg = ReconstructionConfig()
    rng = np.random.default_rng(7)
    ys = np.concatenate([
        rng.choice([cfg.y_top, cfg.y_mid, cfg.y_bot], size=30),
        rng.uniform(-500, 900, size=30),
    ])
    hits = [CRTHit(float(i), float(y), 0.0, 0.0) for i, y in enumerate(ys)]
    out = classify_crt_hits(hits, cfg)
    xs = sorted(h.x for h in out.top + out.mid + out.bottom)
    assert xs == [float(i) for i in range(len(hits))]


def test_empty_input():
    out = classify_crt_hits([])
    assert out.top == out.mid == out.bottom == ()
