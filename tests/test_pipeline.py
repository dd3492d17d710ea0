import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import logging

import pytest

from crt_reco.config import ReconstructionConfig
from crt_reco.geometry import GeometryCatalog, Wire
from crt_reco.histograms import RunSummary
from crt_reco.hits import CRTHit, EventHits, WireHit
from crt_reco.parallel import process_events
from crt_reco.pipeline import process_event, sort_wire_hits, split_by_tpc

CFG = ReconstructionConfig()
CATALOG = GeometryCatalog([
    Wire(channel=2, plane=2, x1=-100.0, y1=-200.0, z1=50.0, x2=-100.0, y2=200.0, z2=50.0),
    Wire(channel=1, plane=1, x1=-100.0, y1=0.0, z1=0.0, x2=-100.0, y2=-50.0, z2=86.6),
    Wire(channel=0, plane=0, x1=-100.0, y1=0.0, z1=20.0, x2=-100.0, y2=10.0, z2=37.32, tpc=0),
])

# vertical muon at x = -100, z = 50 through all three CRT layers
CRT = (
    CRTHit(-100.0, CFG.y_top, 50.0, 0.0),
    CRTHit(-100.0, CFG.y_mid, 50.0, 0.0),
    CRTHit(-90.0, CFG.y_bot, 50.0, 0.0),
)


def _whit(channel, plane, tick, tpc=0):
    return WireHit(channel, 0, tpc, plane, channel, tick)


COINCIDENT = (_whit(2, 2, 10.0), _whit(1, 1, 7.0), _whit(0, 0, 3.0))


def test_matched_event():
    res = process_event(EventHits(3, CRT, COINCIDENT), CATALOG, CFG)
    assert len(res.tracks) == 1 and res.tracks[0].is_complete
    assert len(res.points[0]) == 1 and len(res.points[1]) == 0
    # point at y = -5.77: matched by samples y = -5 and -10, missed by y = 0 and -15
    assert res.scores[res.tracks[0].track_id] == pytest.approx(0.5)
    assert res.matches == res.tracks
    assert (res.n_crt_hits, res.n_real, res.n_matches) == (3, 3, 1)
    assert res.real_fraction == 1.0
    assert set(res.timings) >= {"make_tracks", "sort", "find_intersects", "score", "dedup", "total"}


def test_event_without_crt_hits():
    res = process_event(EventHits(0, (), COINCIDENT), CATALOG, CFG)
    assert res.tracks == [] and res.matches == []
    assert res.n_crt_hits == 0 and res.real_fraction == 0.0


def test_event_without_coincidences():
    wires = (_whit(2, 2, 10.0), _whit(1, 1, 8.0), _whit(0, 0, 3.0))
    res = process_event(EventHits(0, CRT, wires), CATALOG, CFG)
    assert len(res.points[0]) == 0 and len(res.points[1]) == 0
    assert all(s == 0.0 for s in res.scores.values())
    assert res.matches == []
    assert res.n_real == 0


def test_oversized_batches_are_truncated_with_warning(caplog):
    cfg = ReconstructionConfig(max_crt_hits=2, max_wire_hits=2)
    with caplog.at_level(logging.WARNING, logger="crt_reco.hits"):
        res = process_event(EventHits(5, CRT, COINCIDENT), CATALOG, cfg)
    assert res.n_crt_hits == 2
    assert len(res.hits.wire_hits) == 2
    assert "only 2 of 3" in caplog.text


def test_wire_hits_sorted_by_time_then_plane():
    hits = [_whit(0, 0, 5.0), _whit(2, 2, 5.0), _whit(1, 1, 1.0, tpc=1)]
    ordered = sort_wire_hits(hits)
    assert [(h.peak_tick, h.plane) for h in ordered] == [(1.0, 1), (5.0, 2), (5.0, 0)]
    tpc0, tpc1 = split_by_tpc(ordered)
    assert [h.plane for h in tpc0] == [2, 0] and [h.plane for h in tpc1] == [1]


@pytest.mark.parametrize("workers", [1, 3])
def test_parallel_results_keep_event_order(workers):
    events = [EventHits(i, CRT if i % 2 else (), COINCIDENT) for i in range(7)]
    results = list(process_events(iter(events), CATALOG, CFG, max_workers=workers, window=2))
    assert [r.index for r in results] == list(range(7))
    assert [r.n_matches for r in results] == [0, 1, 0, 1, 0, 1, 0]


def test_run_summary():
    summary = RunSummary()
    for ev in (EventHits(0, CRT, COINCIDENT), EventHits(1, (), ())):
        summary.add(process_event(ev, CATALOG, CFG))
    df = summary.to_frame()
    assert df["event"].tolist() == [0, 1]
    assert df["real_fraction"].tolist() == [1.0, 0.0]
    assert "t_score" in df.columns
    counts, edges = summary.real_fraction_histogram(bins=11)
    assert counts.sum() == 2 and edges[0] == 0.0 and edges[-1] == pytest.approx(1.1)
    totals = summary.timing_totals()
    assert totals["total"] >= totals["score"] >= 0.0
