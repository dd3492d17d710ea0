from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from crt_reco.errors import GeometryError

logger = logging.getLogger(__name__)

Vector3 = Tuple[float, float, float]

WIRE_COLUMNS: Tuple[str, ...] = ("channel", "plane", "x1", "y1", "z1", "x2", "y2", "z2")
WIRE_OPTIONAL_COLUMNS: Tuple[str, ...] = ("cryostat", "tpc", "wire")
STRIP_COLUMNS: Tuple[str, ...] = ("channel", "x1", "y1", "z1", "x2", "y2", "z2", "width")


@dataclass(frozen=True, slots=True)
class Wire:
    r"""
    One TPC sense wire.

    Every wire of a detector half (TPC) lies in a plane of constant :math:`x`,
    so ``x1 == x2`` for well-formed geometry.
    """
    channel: int
    plane: int
    x1: float
    y1: float
    z1: float
    x2: float
    y2: float
    z2: float
    cryostat: int = 0
    tpc: int = 0
    wire: int = 0

    @property
    def start(self) -> Vector3:
        return (self.x1, self.y1, self.z1)

    @property
    def end(self) -> Vector3:
        return (self.x2, self.y2, self.z2)


@dataclass(frozen=True, slots=True)
class CRTStrip:
    """A CRT scintillator strip; only used for drawing."""
    channel: int
    x1: float
    y1: float
    z1: float
    x2: float
    y2: float
    z2: float
    width: float


def _read_table(path: Union[str, Path], required: Sequence[str]) -> pd.DataFrame:
    path = Path(path)
    try:
        df = pd.read_csv(path, sep=r"\s+", comment="#")
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise GeometryError(f"Failed to read geometry table {path}: {e}") from e
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise GeometryError(f"{path}: missing column(s) {', '.join(missing)}")
    try:
        df[list(required)] = df[list(required)].apply(pd.to_numeric)
    except ValueError as e:
        raise GeometryError(f"{path}: non-numeric geometry value ({e})") from e
    if df[list(required)].isna().to_numpy().any():
        raise GeometryError(f"{path}: empty geometry values")
    return df


def load_wires(path: Union[str, Path]) -> Tuple[Wire, ...]:
    r"""
    Parse a whitespace-separated wire dump.

    The first non-comment line is a header naming at least
    ``channel plane x1 y1 z1 x2 y2 z2``; ``cryostat``, ``tpc`` and ``wire``
    are optional.

    Raises
    ------
    GeometryError
        If the file is missing, unparsable, lacks a required column or
        carries a plane id outside ``{0, 1, 2}`` or a non-integral channel,
        cryostat, tpc or wire number.
    """
    df = _read_table(path, WIRE_COLUMNS)
    planes = df["plane"].to_numpy()
    bad = ~np.isin(planes, (0, 1, 2))
    if bad.any():
        raise GeometryError(f"{path}: plane ids must be 0, 1 or 2, found {sorted(set(planes[bad].tolist()))}")

    for c in ("channel",) + WIRE_OPTIONAL_COLUMNS:
        if c in df.columns:
            values = pd.to_numeric(df[c], errors="coerce").to_numpy(dtype=np.float64)
            if not np.all(np.isfinite(values) & (values == np.floor(values))):
                raise GeometryError(f"{path}: column {c!r} must hold integers")

    n = len(df)
    ints = {c: df[c].to_numpy(dtype=np.int64) if c in df.columns else np.zeros(n, dtype=np.int64)
            for c in ("channel", "plane") + WIRE_OPTIONAL_COLUMNS}
    xyz = df[["x1", "y1", "z1", "x2", "y2", "z2"]].to_numpy(dtype=np.float64)
    wires = tuple(
        Wire(
            channel=int(ints["channel"][i]),
            plane=int(ints["plane"][i]),
            x1=float(xyz[i, 0]), y1=float(xyz[i, 1]), z1=float(xyz[i, 2]),
            x2=float(xyz[i, 3]), y2=float(xyz[i, 4]), z2=float(xyz[i, 5]),
            cryostat=int(ints["cryostat"][i]),
            tpc=int(ints["tpc"][i]),
            wire=int(ints["wire"][i]),
        )
        for i in range(n)
    )
    logger.info("Loaded %d wires from %s", len(wires), path)
    return wires


def load_strips(path: Union[str, Path]) -> Tuple[CRTStrip, ...]:
    """Parse a whitespace-separated CRT strip dump (``channel x1 y1 z1 x2 y2 z2 width``)."""
    df = _read_table(path, STRIP_COLUMNS)
    strips = tuple(
        CRTStrip(
            channel=int(row.channel),
            x1=float(row.x1), y1=float(row.y1), z1=float(row.z1),
            x2=float(row.x2), y2=float(row.y2), z2=float(row.z2),
            width=float(row.width),
        )
        for row in df.itertuples(index=False)
    )
    logger.info("Loaded %d strips from %s", len(strips), path)
    return strips


class GeometryCatalog:
    r"""
    Read-only lookup of wires by channel id, plus the optional strip table.

    Built once per run and shared (without locking) between event workers.
    """

    __slots__ = ("_wires", "_strips")

    def __init__(self, wires: Iterable[Wire], strips: Iterable[CRTStrip] = ()) -> None:
        by_channel: Dict[int, Wire] = {}
        for w in wires:
            if w.channel in by_channel:
                raise GeometryError(f"Duplicate wire channel {w.channel}")
            by_channel[w.channel] = w
        self._wires: Mapping[int, Wire] = by_channel
        self._strips: Tuple[CRTStrip, ...] = tuple(strips)

    @classmethod
    def from_files(
        cls,
        wires_path: Union[str, Path],
        strips_path: Optional[Union[str, Path]] = None,
    ) -> "GeometryCatalog":
        strips = load_strips(strips_path) if strips_path is not None else ()
        return cls(load_wires(wires_path), strips)

    def wire(self, channel: int) -> Wire:
        try:
            return self._wires[channel]
        except KeyError:
            raise GeometryError(f"No wire for channel {channel}") from None

    @property
    def wires(self) -> Tuple[Wire, ...]:
        return tuple(self._wires.values())

    @property
    def strips(self) -> Tuple[CRTStrip, ...]:
        return self._strips

    def __len__(self) -> int:
        return len(self._wires)

    def __contains__(self, channel: object) -> bool:
        return channel in self._wires
