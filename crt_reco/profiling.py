from __future__ import annotations

import cProfile
import io
import logging
import pstats
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterable, Mapping, Optional

STAGES = ("make_tracks", "sort", "find_intersects", "score", "dedup")


class StageTimer:
    r"""
    Wall-clock lap timer for the stages of one event.

    Each call to :meth:`lap` records :math:`t_\text{now} - t_\text{prev}`
    (:func:`time.perf_counter`) under the given stage name; ``total`` is the
    time since construction.

    Examples
    --------
    >>> timer = StageTimer()
    >>> _ = timer.lap("make_tracks")
    >>> sorted(timer.as_dict())
    ['make_tracks', 'total']
    """

    __slots__ = ("_start", "_last", "_laps")

    def __init__(self) -> None:
        self._start = self._last = time.perf_counter()
        self._laps: Dict[str, float] = {}

    def lap(self, stage: str) -> float:
        now = time.perf_counter()
        dt = now - self._last
        self._laps[stage] = self._laps.get(stage, 0.0) + dt
        self._last = now
        return dt

    def as_dict(self) -> Dict[str, float]:
        out = dict(self._laps)
        out["total"] = self._last - self._start
        return out


def sum_timings(timings: Iterable[Mapping[str, float]]) -> Dict[str, float]:
    """Add up per-event stage timings (seconds)."""
    acc: Dict[str, float] = defaultdict(float)
    for t in timings:
        for k, v in t.items():
            acc[k] += float(v)
    return dict(acc)


@contextmanager
def prof(
    enable: bool = False,
    *,
    sort: str = "tottime",
    limit: Optional[int] = 25,
    dump_path: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
):
    r"""
    Optional :mod:`cProfile` block.

    Disabled, the context is a no-op yielding ``None``. Enabled, it yields the
    active :class:`cProfile.Profile`; on exit the top ``limit`` rows sorted by
    ``sort`` are sent to ``logger.info`` (or printed), and a binary
    ``.pstats`` file is written when ``dump_path`` is given.
    """
    if not enable:
        yield None
        return

    pr = cProfile.Profile()
    t0 = time.perf_counter()
    pr.enable()
    try:
        yield pr
    finally:
        pr.disable()
        t1 = time.perf_counter()

        s = io.StringIO()
        ps = pstats.Stats(pr, stream=s)
        ps.strip_dirs()
        ps.sort_stats(sort)
        ps.print_stats(limit if limit is not None else 1_000_000)
        text = f"[prof] elapsed={t1 - t0:.6f}s sort={sort} limit={limit}\n" + s.getvalue()

        if dump_path:
            ps.dump_stats(dump_path)

        if logger is not None:
            logger.info(text)
        else:
            print(text, end="")
