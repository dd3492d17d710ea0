from __future__ import annotations

import logging
from typing import Hashable, List, Mapping, Sequence, Set, Tuple

import networkx as nx

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig
from crt_reco.geometry import Vector3
from crt_reco.tracks import CRTTrack

logger = logging.getLogger(__name__)


def _track_node(track_id: int) -> Tuple[str, int]:
    return ("track", track_id)


def _endpoint_node(key: Vector3) -> Tuple[str, Vector3]:
    return ("endpoint", key)


def endpoint_graph(tracks: Sequence[CRTTrack]) -> nx.Graph:
    r"""
    Bipartite graph linking each track to its endpoint keys.

    Track nodes are ``("track", track_id)``; endpoint nodes are
    ``("endpoint", (x, y, z))`` using :meth:`CRTTrack.endpoint_keys`, so
    bottom endpoints meet on :math:`(0, y, z)`. Two tracks are *siblings*
    when they share an endpoint node.
    """
    g = nx.Graph()
    for t in tracks:
        node = _track_node(t.track_id)
        g.add_node(node, bipartite=0)
        for key in t.endpoint_keys():
            g.add_node(_endpoint_node(key), bipartite=1)
            g.add_edge(node, _endpoint_node(key))
    return g


def siblings(graph: nx.Graph, track: CRTTrack) -> List[int]:
    """Ids of the other tracks sharing at least one endpoint with ``track``."""
    me = _track_node(track.track_id)
    out: List[int] = []
    seen: Set[Hashable] = {me}
    for key in track.endpoint_keys():
        for node in graph.neighbors(_endpoint_node(key)):
            if node not in seen:
                seen.add(node)
                out.append(node[1])
    return out


def deduplicate_tracks(
    tracks: Sequence[CRTTrack],
    scores: Mapping[int, float],
    config: ReconstructionConfig = DEFAULT_CONFIG,
) -> List[CRTTrack]:
    r"""
    Keep the best-scoring track of every group of tracks sharing endpoints.

    Tracks are visited once, in the given (generation) order. Track :math:`t`
    with score :math:`s_t` is accepted iff :math:`s_t >` ``score_epsilon``
    and for every sibling :math:`u`:

    - :math:`s_u \le s_t`, and
    - if :math:`s_u = s_t`, the value :math:`s_t` has not been accepted yet.

    The set of accepted score *values* is the only state carried across the
    pass. It is keyed by value, not by track, so two unrelated tracks that
    happen to tie also block each other.

    Returns
    -------
    list of CRTTrack
        Accepted tracks in visiting order.
    """
    graph = endpoint_graph(tracks)
    used_scores: Set[float] = set()
    matches: List[CRTTrack] = []
    for track in tracks:
        score = scores[track.track_id]
        if not score > config.score_epsilon:
            continue
        best = True
        for other in siblings(graph, track):
            other_score = scores[other]
            if score < other_score or (score == other_score and score in used_scores):
                best = False
                break
        if best:
            matches.append(track)
            used_scores.add(score)

    logger.debug("Accepted %d of %d tracks", len(matches), len(tracks))
    return matches
