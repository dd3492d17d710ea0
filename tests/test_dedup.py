import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from crt_reco.dedup import deduplicate_tracks, endpoint_graph, siblings
from crt_reco.tracks import CRTTrack

TOP = (10.0, 740.0, 100.0)
MID = (10.0, 620.0, 100.0)
BOT = (10.0, -360.0, 100.0)


def _tm(track_id, top=TOP, mid=MID):
    return CRTTrack(track_id, mid[0], mid[1], mid[2], top=top, mid=mid)


def _tb(track_id, top=TOP, bot=BOT):
    return CRTTrack(track_id, bot[0], bot[1], bot[2], top=top, bot=bot)


def _ids(tracks):
    return [t.track_id for t in tracks]


def test_higher_score_wins_regardless_of_order():
    a, b = _tm(0), _tb(1)
    scores = {0: 0.8, 1: 0.5}
    assert _ids(deduplicate_tracks([a, b], scores)) == [0]
    assert _ids(deduplicate_tracks([b, a], scores)) == [0]


def test_tie_goes_to_first_processed():
    a, b = _tm(0), _tb(1)
    scores = {0: 0.6, 1: 0.6}
    assert _ids(deduplicate_tracks([a, b], scores)) == [0]
    assert _ids(deduplicate_tracks([b, a], scores)) == [1]


def test_scores_at_or_below_epsilon_are_rejected():
    a = _tm(0)
    assert deduplicate_tracks([a], {0: 0.0}) == []
    assert deduplicate_tracks([a], {0: 1e-6}) == []
    assert _ids(deduplicate_tracks([a], {0: 2e-6})) == [0]


def test_independent_tracks_are_all_kept():
    a = _tm(0)
    b = _tm(1, top=(50.0, 740.0, 0.0), mid=(50.0, 620.0, 0.0))
    assert _ids(deduplicate_tracks([a, b], {0: 0.3, 1: 0.9})) == [0, 1]


def test_bottom_endpoints_meet_regardless_of_x():
    a = _tb(0, top=(1.0, 740.0, 0.0), bot=(5.0, -360.0, 100.0))
    b = _tb(1, top=(2.0, 740.0, 0.0), bot=(-7.0, -360.0, 100.0))
    g = endpoint_graph([a, b])
    assert siblings(g, a) == [1]
    assert _ids(deduplicate_tracks([a, b], {0: 0.4, 1: 0.7})) == [1]


def test_used_scores_are_keyed_by_value():
    # a is unrelated to c and d but its accepted score blocks their tie
    a = _tm(0, top=(90.0, 740.0, 0.0), mid=(90.0, 620.0, 0.0))
    c = _tm(1)
    d = _tb(2)
    out = deduplicate_tracks([a, c, d], {0: 0.5, 1: 0.5, 2: 0.5})
    assert _ids(out) == [0]


def test_chain_of_conflicts():
    # b shares top with a and bottom with c
    a = _tm(0)
    b = _tb(1)
    c = _tb(2, top=(70.0, 740.0, 0.0))
    out = deduplicate_tracks([a, b, c], {0: 0.2, 1: 0.9, 2: 0.4})
    assert _ids(out) == [1]


def test_empty():
    assert deduplicate_tracks([], {}) == []
