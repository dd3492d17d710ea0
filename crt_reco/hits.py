from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterator, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np
import uproot

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig

logger = logging.getLogger(__name__)

WIRE_BRANCHES: Tuple[str, ...] = (
    "hit_channel", "hit_cryostat", "hit_tpc", "hit_plane", "hit_wire", "hit_peakT", "nhits",
)
CRT_BRANCHES: Tuple[str, ...] = ("chit_x", "chit_y", "chit_z", "chit_time", "nchits")


@dataclass(frozen=True, slots=True)
class CRTHit:
    """One CRT (tagger) hit."""
    x: float
    y: float
    z: float
    t: float

    @property
    def position(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True, slots=True)
class WireHit:
    """One TPC wire hit; ``tpc`` is the detector half."""
    channel: int
    cryostat: int
    tpc: int
    plane: int
    wire: int
    peak_tick: float


@dataclass(frozen=True, slots=True)
class EventHits:
    r"""
    The hit batches of a single event.

    Attributes
    ----------
    index : int
        Entry number in the source tree.
    crt_hits : tuple of CRTHit
    wire_hits : tuple of WireHit
    """
    index: int
    crt_hits: Tuple[CRTHit, ...]
    wire_hits: Tuple[WireHit, ...]

    def truncated(self, config: ReconstructionConfig = DEFAULT_CONFIG) -> "EventHits":
        r"""
        Clip both batches to the configured capacities.

        Oversized batches are not an error: a WARNING is logged and only the
        first ``max_crt_hits`` / ``max_wire_hits`` hits are kept.
        """
        crt, wire = self.crt_hits, self.wire_hits
        if len(crt) > config.max_crt_hits:
            logger.warning(
                "Event %d: too few max CRT hits, only %d of %d hits are being used",
                self.index, config.max_crt_hits, len(crt),
            )
            crt = crt[: config.max_crt_hits]
        if len(wire) > config.max_wire_hits:
            logger.warning(
                "Event %d: too few max wire hits, only %d of %d hits are being used",
                self.index, config.max_wire_hits, len(wire),
            )
            wire = wire[: config.max_wire_hits]
        if crt is self.crt_hits and wire is self.wire_hits:
            return self
        return replace(self, crt_hits=crt, wire_hits=wire)


@dataclass(frozen=True, slots=True)
class ClassifiedHits:
    """CRT hits split by layer; each input hit appears in exactly one tuple."""
    top: Tuple[CRTHit, ...]
    mid: Tuple[CRTHit, ...]
    bottom: Tuple[CRTHit, ...]


def _near(y: float, height: float, eps: float) -> bool:
    return abs(y - height) < eps


def classify_crt_hits(
    hits: Sequence[CRTHit],
    config: ReconstructionConfig = DEFAULT_CONFIG,
) -> ClassifiedHits:
    r"""
    Split CRT hits into top, middle and bottom layers by height.

    A hit is *top* if :math:`|y - y_\text{top}| < \varepsilon`, otherwise *mid*
    if :math:`|y - y_\text{mid}| < \varepsilon`, otherwise *bottom*. Hits near
    no calibrated height therefore land in the bottom layer.
    """
    eps = config.layer_tolerance
    top: List[CRTHit] = []
    mid: List[CRTHit] = []
    bottom: List[CRTHit] = []
    for hit in hits:
        if _near(hit.y, config.y_top, eps):
            top.append(hit)
        elif _near(hit.y, config.y_mid, eps):
            mid.append(hit)
        else:
            bottom.append(hit)
    return ClassifiedHits(tuple(top), tuple(mid), tuple(bottom))


class HitSource(Protocol):
    """Anything that yields per-event hit batches in event order."""

    def events(self) -> Iterator[EventHits]:
        ...


class RootHitSource:
    r"""
    Read hitdumper ROOT trees with :mod:`uproot`.

    Parameters
    ----------
    path : str or Path
        ROOT file holding the ``hitdumper/hitdumpertree`` tree.
    tree : str, optional
        Object path of the tree inside the file.
    entry_start, entry_stop : int, optional
        Entry range to read (``entry_stop`` is exclusive).
    step_size : int, optional
        Number of entries fetched per :meth:`uproot.TTree.iterate` chunk.

    Notes
    -----
    The counters ``nchits``/``nhits`` are trusted over the array lengths, so a
    count larger than what was stored only uses the stored hits.
    """

    def __init__(
        self,
        path: Union[str, Path],
        tree: str = "hitdumper/hitdumpertree",
        *,
        entry_start: Optional[int] = None,
        entry_stop: Optional[int] = None,
        step_size: int = 1000,
    ) -> None:
        self.path = Path(path)
        self.tree = tree
        self.entry_start = entry_start
        self.entry_stop = entry_stop
        self.step_size = int(step_size)

    def num_entries(self) -> int:
        with uproot.open(self.path) as f:
            return int(f[self.tree].num_entries)

    def events(self) -> Iterator[EventHits]:
        index = self.entry_start or 0
        with uproot.open(self.path) as f:
            tree = f[self.tree]
            for data in tree.iterate(
                list(CRT_BRANCHES + WIRE_BRANCHES),
                step_size=self.step_size,
                entry_start=self.entry_start,
                entry_stop=self.entry_stop,
                library="np",
            ):
                for j in range(len(data["nchits"])):
                    yield EventHits(index, _crt_hits(data, j), _wire_hits(data, j))
                    index += 1


def _crt_hits(data, j: int) -> Tuple[CRTHit, ...]:
    x = np.asarray(data["chit_x"][j], dtype=np.float64)
    y = np.asarray(data["chit_y"][j], dtype=np.float64)
    z = np.asarray(data["chit_z"][j], dtype=np.float64)
    t = np.asarray(data["chit_time"][j], dtype=np.float64)
    n = min(int(data["nchits"][j]), x.size)
    return tuple(CRTHit(float(x[k]), float(y[k]), float(z[k]), float(t[k])) for k in range(n))


def _wire_hits(data, j: int) -> Tuple[WireHit, ...]:
    channel = np.asarray(data["hit_channel"][j], dtype=np.int64)
    cryo = np.asarray(data["hit_cryostat"][j], dtype=np.int64)
    tpc = np.asarray(data["hit_tpc"][j], dtype=np.int64)
    plane = np.asarray(data["hit_plane"][j], dtype=np.int64)
    wire = np.asarray(data["hit_wire"][j], dtype=np.int64)
    peak = np.asarray(data["hit_peakT"][j], dtype=np.float64)
    n = min(int(data["nhits"][j]), channel.size)
    return tuple(
        WireHit(int(channel[k]), int(cryo[k]), int(tpc[k]), int(plane[k]), int(wire[k]), float(peak[k]))
        for k in range(n)
    )
