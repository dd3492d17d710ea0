from __future__ import annotations

import dataclasses
import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig
from crt_reco.geometry import Vector3
from crt_reco.hits import ClassifiedHits, CRTHit

logger = logging.getLogger(__name__)


def bottom_key(point: Vector3) -> Vector3:
    r"""
    Matching key of a bottom-layer endpoint.

    The bottom CRT layer only measures :math:`(y, z)`, so its :math:`x` is
    replaced by ``0.0`` whenever bottom endpoints are compared.
    """
    return (0.0, point[1], point[2])


@dataclass(frozen=True, slots=True)
class CRTTrack:
    r"""
    Straight-line track candidate through two or three CRT layers.

    The line passes through the base point :math:`b=(x_b,y_b,z_b)` and the
    top-most endpoint :math:`p`; its constant slopes are

    .. math::

        s_x = \frac{p_x - x_b}{p_y - y_b}, \qquad
        s_z = \frac{p_z - z_b}{p_y - y_b}.

    Attributes
    ----------
    track_id : int
        Identifier unique within the event, increasing in generation order.
    xb, yb, zb : float
        Base point.
    top, mid, bot : (x, y, z) or None
        Endpoints present on this track. For completed tracks ``bot`` holds
        the projected :math:`x`; see :func:`bottom_key` for how it is compared.
    """
    track_id: int
    xb: float
    yb: float
    zb: float
    top: Optional[Vector3] = None
    mid: Optional[Vector3] = None
    bot: Optional[Vector3] = None

    @classmethod
    def top_mid(cls, track_id: int, top: CRTHit, mid: CRTHit) -> "CRTTrack":
        return cls(track_id, mid.x, mid.y, mid.z, top=top.position, mid=mid.position)

    @classmethod
    def top_bot(cls, track_id: int, top: CRTHit, bot: CRTHit) -> "CRTTrack":
        return cls(track_id, bot.x, bot.y, bot.z, top=top.position, bot=bot.position)

    @classmethod
    def mid_bot(cls, track_id: int, mid: CRTHit, bot: CRTHit) -> "CRTTrack":
        return cls(track_id, bot.x, bot.y, bot.z, mid=mid.position, bot=bot.position)

    def completed(self, track_id: int, bot: Vector3) -> "CRTTrack":
        """Copy of a top→mid track with a bottom endpoint; the line is unchanged."""
        return CRTTrack(track_id, self.xb, self.yb, self.zb, top=self.top, mid=self.mid, bot=bot)

    @property
    def n_endpoints(self) -> int:
        return sum(p is not None for p in (self.top, self.mid, self.bot))

    @property
    def is_complete(self) -> bool:
        return self.n_endpoints == 3

    @property
    def topmost(self) -> Vector3:
        for p in (self.top, self.mid, self.bot):
            if p is not None:
                return p
        raise ValueError(f"track {self.track_id} has no endpoints")

    @property
    def is_degenerate(self) -> bool:
        """``True`` when the top-most endpoint and the base point share a height."""
        return self.topmost[1] == self.yb

    @property
    def slopes(self) -> Tuple[float, float]:
        """``(dx/dy, dz/dy)``."""
        px, py, pz = self.topmost
        dy = py - self.yb
        return (px - self.xb) / dy, (pz - self.zb) / dy

    def project_y(self, y: float) -> Vector3:
        """Point of the line at height ``y``."""
        sx, sz = self.slopes
        dy = y - self.yb
        return (self.xb + sx * dy, y, self.zb + sz * dy)

    def endpoint_keys(self) -> List[Vector3]:
        """Matching keys of the endpoints present, in top/mid/bottom order."""
        keys: List[Vector3] = []
        if self.top is not None:
            keys.append(self.top)
        if self.mid is not None:
            keys.append(self.mid)
        if self.bot is not None:
            keys.append(bottom_key(self.bot))
        return keys

    def contains_hit(self, hit: CRTHit) -> bool:
        """Whether ``hit`` is one of this track's endpoints."""
        pos = hit.position
        if pos == self.top or pos == self.mid:
            return True
        return self.bot is not None and bottom_key(pos) == bottom_key(self.bot)


def _same_side(a: float, b: float) -> bool:
    return math.copysign(1.0, a) == math.copysign(1.0, b)


def build_candidate_tracks(
    hits: ClassifiedHits,
    config: ReconstructionConfig = DEFAULT_CONFIG,
) -> List[CRTTrack]:
    r"""
    Build every track candidate of an event from its classified CRT hits.

    Steps
    -----
    1. One top→mid seed per ``(top, mid)`` pair, based at the mid hit.
    2. If the bottom layer has hits, every seed is replaced by its bottom
       completions: for each bottom hit :math:`h`, the seed line is projected
       to :math:`y=h_y` giving :math:`q`; :math:`h` completes the seed iff
       ``signbit(q_x) == signbit(h_x)`` and :math:`\lVert h - q\rVert <`
       ``bottom_match_distance``. The completion's bottom endpoint is
       :math:`(q_x, h_y, h_z)`. A seed may complete zero or several times.
    3. For each bottom hit: one top→bottom pair per top hit, then one
       mid→bottom pair per mid hit.
    4. Pairs already contained in a completed track (same bottom key and same
       top or mid endpoint) are dropped.

    Returns
    -------
    list of CRTTrack
        Completed (or seed) tracks followed by the surviving pairs, in
        generation order, with ``track_id`` ``0..n-1`` in that order. Later
        tie-breaking depends on this order.
    """
    pending = [CRTTrack.top_mid(-1, t, m) for t in hits.top for m in hits.mid]

    completed: List[CRTTrack] = []
    if hits.bottom:
        for seed in pending:
            for b in hits.bottom:
                proj = seed.project_y(b.y)
                if _same_side(proj[0], b.x) and math.dist(b.position, proj) < config.bottom_match_distance:
                    completed.append(seed.completed(-1, (proj[0], b.y, b.z)))
    else:
        completed = pending

    by_bottom: Dict[Vector3, List[CRTTrack]] = defaultdict(list)
    for track in completed:
        if track.bot is not None:
            by_bottom[bottom_key(track.bot)].append(track)

    pairs: List[CRTTrack] = []
    n_redundant = 0
    for b in hits.bottom:
        candidates = [CRTTrack.top_bot(-1, t, b) for t in hits.top]
        candidates += [CRTTrack.mid_bot(-1, m, b) for m in hits.mid]
        for pair in candidates:
            if _is_subsumed(pair, by_bottom.get(bottom_key(pair.bot), ())):
                n_redundant += 1
            else:
                pairs.append(pair)

    logger.debug(
        "Built %d seeds -> %d completed tracks, %d pairs (%d redundant dropped)",
        len(pending), len(completed), len(pairs), n_redundant,
    )
    # ids are positions in the final order
    return [dataclasses.replace(t, track_id=i) for i, t in enumerate(completed + pairs)]


def _is_subsumed(pair: CRTTrack, completed: Sequence[CRTTrack]) -> bool:
    for comp in completed:
        if (pair.top is not None and pair.top == comp.top) or (pair.mid is not None and pair.mid == comp.mid):
            return True
    return False
