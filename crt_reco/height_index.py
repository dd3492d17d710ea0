from __future__ import annotations

import math
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig
from crt_reco.intersect import PointSet


class HeightBin(NamedTuple):
    """Read-only views of the points falling in one height slice."""
    ids: np.ndarray
    xyz: np.ndarray


class HeightIndex:
    r"""
    Equal-width height binning of one detector half's space points.

    The extent :math:`[y_\min, y_\max]` is cut into ``n_bins`` contiguous bins
    of width :math:`w=(y_\max-y_\min)/n`; bin :math:`k` covers
    :math:`[y_\min + k w,\; y_\min + (k+1) w)` and the last bin also holds
    :math:`y_\max`. Points outside the extent are not indexed.

    The points are sorted once by bin (stable, so each bin keeps the input
    order) and every bin is a slice of that single array, so lookups never
    copy.
    """

    __slots__ = ("tpc", "y_min", "y_max", "n_bins", "width", "_ids", "_xyz", "_offsets")

    def __init__(
        self,
        points: PointSet,
        y_min: float = DEFAULT_CONFIG.y_min,
        y_max: float = DEFAULT_CONFIG.y_max,
        n_bins: int = DEFAULT_CONFIG.n_height_bins,
    ) -> None:
        if n_bins < 1:
            raise ValueError(f"n_bins must be >= 1, got {n_bins}")
        if not y_min < y_max:
            raise ValueError(f"empty extent [{y_min}, {y_max}]")
        self.tpc = points.tpc
        self.y_min = float(y_min)
        self.y_max = float(y_max)
        self.n_bins = int(n_bins)
        self.width = (self.y_max - self.y_min) / self.n_bins

        y = points.xyz[:, 1]
        inside = (y >= self.y_min) & (y <= self.y_max)
        bins = self._bin_of(y[inside])
        order = np.argsort(bins, kind="stable")
        self._ids = points.ids[inside][order]
        self._xyz = np.ascontiguousarray(points.xyz[inside][order])
        self._offsets = np.searchsorted(bins[order], np.arange(self.n_bins + 1), side="left")
        self._ids.flags.writeable = False
        self._xyz.flags.writeable = False

    @classmethod
    def from_config(cls, points: PointSet, config: ReconstructionConfig = DEFAULT_CONFIG) -> "HeightIndex":
        return cls(points, config.y_min, config.y_max, config.n_height_bins)

    def _bin_of(self, y: np.ndarray) -> np.ndarray:
        k = np.floor((y - self.y_min) / self.width).astype(np.int64)
        return np.minimum(k, self.n_bins - 1)

    def __len__(self) -> int:
        return int(self._ids.size)

    def bin(self, k: int) -> HeightBin:
        a, b = self._offsets[k], self._offsets[k + 1]
        return HeightBin(self._ids[a:b], self._xyz[a:b])

    def bins(self) -> List[HeightBin]:
        return [self.bin(k) for k in range(self.n_bins)]

    def bin_index(self, y: float) -> Optional[int]:
        """Bin holding height ``y``, or ``None`` outside the extent."""
        if y < self.y_min or y > self.y_max:
            return None
        return min(math.floor((y - self.y_min) / self.width), self.n_bins - 1)

    def at_y(self, y: float) -> Tuple[HeightBin, Optional[HeightBin]]:
        r"""
        Points in the bin containing ``y`` and in its nearer neighbour.

        Returns
        -------
        at : HeightBin
            Points of the bin containing ``y`` (empty outside the extent).
        near : HeightBin or None
            Points of the adjacent bin across the boundary closer to ``y``
            (the lower bin when ``y`` is in the lower half of its bin, the
            upper bin otherwise), or ``None`` if that bin would lie outside
            the extent.
        """
        k = self.bin_index(y)
        if k is None:
            return HeightBin(self._ids[:0], self._xyz[:0]), None
        lower_edge = self.y_min + k * self.width
        j = k - 1 if (y - lower_edge) < 0.5 * self.width else k + 1
        near = self.bin(j) if 0 <= j < self.n_bins else None
        return self.bin(k), near
