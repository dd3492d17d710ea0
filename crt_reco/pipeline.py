from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig
from crt_reco.dedup import deduplicate_tracks
from crt_reco.geometry import GeometryCatalog
from crt_reco.height_index import HeightIndex
from crt_reco.hits import ClassifiedHits, CRTHit, EventHits, WireHit, classify_crt_hits
from crt_reco.intersect import PointSet, wire_hit_intersections
from crt_reco.profiling import StageTimer
from crt_reco.scoring import score_tracks
from crt_reco.tracks import CRTTrack, build_candidate_tracks

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EventResult:
    r"""
    Everything produced for one event.

    Attributes
    ----------
    index : int
        Event (tree entry) number.
    hits : EventHits
        The (possibly truncated) input batches.
    classified : ClassifiedHits
        CRT hits by layer.
    tracks : list of CRTTrack
        All candidates, in generation order.
    points : (PointSet, PointSet)
        Reconstructed space points of halves 0 and 1.
    scores : dict[int, float]
        ``track_id -> score``.
    matches : list of CRTTrack
        Accepted tracks.
    n_real : int
        CRT hits that are an endpoint of at least one accepted track.
    timings : dict[str, float]
        Stage wall-clock times in seconds (see :mod:`crt_reco.profiling`).
    """
    index: int
    hits: EventHits
    classified: ClassifiedHits
    tracks: List[CRTTrack]
    points: Tuple[PointSet, PointSet]
    scores: Dict[int, float]
    matches: List[CRTTrack]
    n_real: int
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def n_crt_hits(self) -> int:
        return len(self.hits.crt_hits)

    @property
    def n_matches(self) -> int:
        return len(self.matches)

    @property
    def real_fraction(self) -> float:
        """Share of CRT hits explained by accepted tracks (``0.0`` without hits)."""
        return self.n_real / self.n_crt_hits if self.n_crt_hits else 0.0


def sort_wire_hits(hits: Sequence[WireHit]) -> List[WireHit]:
    """Order by peak time, then by plane descending (collection plane first)."""
    return sorted(hits, key=lambda h: (h.peak_tick, -h.plane))


def split_by_tpc(hits: Sequence[WireHit]) -> Tuple[List[WireHit], List[WireHit]]:
    """Half 0 is ``tpc == 0``; every other label goes to half 1."""
    tpc0 = [h for h in hits if h.tpc == 0]
    tpc1 = [h for h in hits if h.tpc != 0]
    return tpc0, tpc1


def count_real_hits(crt_hits: Sequence[CRTHit], matches: Sequence[CRTTrack]) -> int:
    return sum(1 for h in crt_hits if any(m.contains_hit(h) for m in matches))


def process_event(
    event: EventHits,
    catalog: GeometryCatalog,
    config: ReconstructionConfig = DEFAULT_CONFIG,
) -> EventResult:
    r"""
    Run one event through the full matching chain.

    Pipeline
    --------
    1. Truncate oversized batches (:meth:`EventHits.truncated`).
    2. Classify CRT hits and build track candidates.
    3. Sort wire hits by time and split them by detector half.
    4. Reconstruct space points per half and index them by height.
    5. Score every candidate, then keep the non-conflicting best ones.

    Only ``catalog`` and ``config`` are shared between events; both are
    read-only here, so events may be processed concurrently.
    """
    timer = StageTimer()
    event = event.truncated(config)

    classified = classify_crt_hits(event.crt_hits, config)
    tracks = build_candidate_tracks(classified, config)
    timer.lap("make_tracks")

    tpc0, tpc1 = split_by_tpc(sort_wire_hits(event.wire_hits))
    timer.lap("sort")

    points0 = wire_hit_intersections(tpc0, catalog, config, tpc=0)
    points1 = wire_hit_intersections(tpc1, catalog, config, tpc=1, first_id=len(points0))
    indexes = (HeightIndex.from_config(points0, config), HeightIndex.from_config(points1, config))
    timer.lap("find_intersects")

    scores = score_tracks(tracks, indexes, config)
    dt = timer.lap("score")
    if dt > config.slow_score_warn_s:
        logger.warning(
            "Event %d: scoring took %.0f us (%d crt hits, %d wire hits, %d tot intersects)",
            event.index, dt * 1e6, len(event.crt_hits), len(event.wire_hits), len(points0) + len(points1),
        )

    matches = deduplicate_tracks(tracks, scores, config)
    timer.lap("dedup")

    result = EventResult(
        index=event.index,
        hits=event,
        classified=classified,
        tracks=tracks,
        points=(points0, points1),
        scores=scores,
        matches=matches,
        n_real=count_real_hits(event.crt_hits, matches),
        timings=timer.as_dict(),
    )
    logger.debug(
        "Event %d: %d tracks, %d points, %d matches, real fraction %.3f",
        result.index, len(tracks), len(points0) + len(points1), result.n_matches, result.real_fraction,
    )
    return result
