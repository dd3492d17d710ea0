from __future__ import annotations

from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from crt_reco.pipeline import EventResult
from crt_reco.profiling import STAGES, sum_timings

SUMMARY_COLUMNS: Tuple[str, ...] = ("event", "n_crt_hits", "n_real", "n_matches", "real_fraction")


class RunSummary:
    r"""
    Per-event counters of a run, collected for reporting.

    One row is kept per :class:`~crt_reco.pipeline.EventResult`; the
    reconstructed objects themselves are not retained.
    """

    def __init__(self) -> None:
        self._rows: List[Dict[str, float]] = []
        self._timings: List[Dict[str, float]] = []

    def add(self, result: EventResult) -> None:
        self._rows.append(
            {
                "event": result.index,
                "n_crt_hits": result.n_crt_hits,
                "n_real": result.n_real,
                "n_matches": result.n_matches,
                "real_fraction": result.real_fraction,
            }
        )
        self._timings.append(dict(result.timings))

    def __len__(self) -> int:
        return len(self._rows)

    def to_frame(self) -> pd.DataFrame:
        """Counters as a DataFrame with one row per event, plus ``t_<stage>`` columns."""
        df = pd.DataFrame(self._rows, columns=list(SUMMARY_COLUMNS))
        if self._timings:
            t = pd.DataFrame(self._timings).add_prefix("t_")
            df = pd.concat([df, t.reset_index(drop=True)], axis=1)
        return df

    def real_fraction_histogram(self, bins: int = 10) -> Tuple[np.ndarray, np.ndarray]:
        r"""
        Histogram of the per-event real-hit fraction over :math:`[0, 1.1]`.

        Returns
        -------
        counts : (bins,) int64 ndarray
        edges : (bins + 1,) float64 ndarray
        """
        values = np.fromiter((r["real_fraction"] for r in self._rows), dtype=np.float64, count=len(self._rows))
        return np.histogram(values, bins=bins, range=(0.0, 1.1))

    def timing_totals(self) -> Dict[str, float]:
        """Summed stage times (seconds); every stage key is present."""
        totals = {k: 0.0 for k in STAGES + ("total",)}
        totals.update(sum_timings(self._timings))
        return totals
