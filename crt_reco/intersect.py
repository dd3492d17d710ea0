from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig
from crt_reco.geometry import GeometryCatalog, Vector3, Wire
from crt_reco.hits import WireHit

logger = logging.getLogger(__name__)

# Induction planes are tilted by 60 degrees from the vertical collection wires
_STEREO_SLOPE = 1.0 / math.sqrt(3.0)
# Slack for the searchsorted pre-selection; the exact window test follows
_WINDOW_PAD = 1e-9


@dataclass(frozen=True, slots=True)
class PointSet:
    r"""
    Reconstructed space points of one detector half, stored column-wise.

    Attributes
    ----------
    tpc : int
        Detector half (``0`` is the :math:`x<0` half).
    ids : (N,) int64 ndarray
        Point identifiers, unique within the event.
    xyz : (N, 3) float64 ndarray
        Point coordinates.
    """
    tpc: int
    ids: np.ndarray
    xyz: np.ndarray

    @classmethod
    def empty(cls, tpc: int) -> "PointSet":
        return cls(tpc, np.empty(0, dtype=np.int64), np.empty((0, 3), dtype=np.float64))

    def __len__(self) -> int:
        return int(self.ids.size)


def intersection(plane2: Wire, plane1: Wire, plane0: Wire) -> Optional[Vector3]:
    r"""
    Space point where one wire from each plane crosses.

    The whole half shares one :math:`x` (taken from the plane-0 wire). In the
    :math:`(z,y)` plane the plane-1 wire is the line
    :math:`y = m(z - z_1) + y_1` with :math:`|m| = 1/\sqrt{3}`; the sign of
    :math:`m` is negative when the plane-0 wire rises with :math:`z`. Solving
    against the plane-0 line gives

    .. math::

        z^* = \frac{m(z_1 + z_0) + y_0 - y_1}{2m}, \qquad
        y = m(z^* - z_1) + y_1 .

    The returned :math:`z` is the plane-2 (collection) wire's :math:`z`, not
    :math:`z^*`.

    Returns
    -------
    (x, y, z) or None
        ``None`` unless the wires lie on planes 2, 1 and 0 respectively.
    """
    if plane2.plane != 2 or plane1.plane != 1 or plane0.plane != 0:
        return None

    x = plane0.x1

    m = _STEREO_SLOPE
    lo_y, hi_y = (plane0.y1, plane0.y2) if plane0.z1 < plane0.z2 else (plane0.y2, plane0.y1)
    if hi_y > lo_y:
        m = -m

    z = (m * (plane1.z1 + plane0.z1) + plane0.y1 - plane1.y1) / (2 * m)
    y = m * (z - plane1.z1) + plane1.y1
    return (x, y, plane2.z1)


def _bucket(hits: Sequence[WireHit], catalog: GeometryCatalog, plane: int) -> Tuple[np.ndarray, List[Wire]]:
    sel = [h for h in hits if h.plane == plane] if plane != 0 else [h for h in hits if h.plane not in (1, 2)]
    times = np.fromiter((h.peak_tick for h in sel), dtype=np.float64, count=len(sel))
    order = np.argsort(times, kind="stable")
    return times[order], [catalog.wire(sel[i].channel) for i in order]


def _window(times: np.ndarray, t: float, lo: float, hi: float) -> range:
    # indices k with lo <= t - times[k] <= hi, up to _WINDOW_PAD
    start = int(np.searchsorted(times, t - hi - _WINDOW_PAD, side="left"))
    stop = int(np.searchsorted(times, t - lo + _WINDOW_PAD, side="right"))
    return range(start, stop)


def wire_hit_intersections(
    hits: Sequence[WireHit],
    catalog: GeometryCatalog,
    config: ReconstructionConfig = DEFAULT_CONFIG,
    *,
    tpc: int = 0,
    first_id: int = 0,
) -> PointSet:
    r"""
    Reconstruct the space points of one detector half.

    Every triple ``(p2, p1, p0)`` of hits on planes 2, 1 and 0 with

    .. math::

        w_\text{lo} \le t_2 - t_1 \le w_\text{hi}, \qquad
        w_\text{lo} \le t_1 - t_0 \le w_\text{hi}

    (``coincidence_window``) produces one point via :func:`intersection`.
    Hits whose plane is neither 1 nor 2 are treated as plane 0.

    Each bucket is time-sorted (stable), so the window is located with
    :func:`numpy.searchsorted` before any triple is formed; the closed window
    test is then applied to the actual differences.

    Parameters
    ----------
    hits : sequence of WireHit
        Hits of a single half, normally already sorted by time.
    catalog : GeometryCatalog
        Wire lookup by channel.
    tpc : int
        Half label stored on the result.
    first_id : int
        Identifier of the first emitted point.

    Raises
    ------
    GeometryError
        If a hit refers to a channel missing from ``catalog``.
    """
    w_lo, w_hi = config.coincidence_window
    t2s, wires2 = _bucket(hits, catalog, 2)
    t1s, wires1 = _bucket(hits, catalog, 1)
    t0s, wires0 = _bucket(hits, catalog, 0)

    points: List[Vector3] = []
    for i2, t2 in enumerate(t2s):
        for i1 in _window(t1s, t2, w_lo, w_hi):
            t1 = t1s[i1]
            d21 = t2 - t1
            if d21 < w_lo or d21 > w_hi:
                continue
            for i0 in _window(t0s, t1, w_lo, w_hi):
                d10 = t1 - t0s[i0]
                if d10 < w_lo or d10 > w_hi:
                    continue
                point = intersection(wires2[i2], wires1[i1], wires0[i0])
                if point is not None:
                    points.append(point)

    if not points:
        return PointSet.empty(tpc)
    xyz = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    ids = np.arange(first_id, first_id + len(points), dtype=np.int64)
    logger.debug("TPC %d: %d plane-2, %d plane-1, %d plane-0 hits -> %d points",
                 tpc, t2s.size, t1s.size, t0s.size, len(points))
    return PointSet(tpc, ids, xyz)
