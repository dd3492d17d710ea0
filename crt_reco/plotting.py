import logging
from typing import Optional

import numpy as np
import matplotlib.pyplot as plt

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig
from crt_reco.geometry import GeometryCatalog
from crt_reco.histograms import RunSummary
from crt_reco.pipeline import EventResult

logger = logging.getLogger(__name__)


def _show_and_close(fig, *, do_show: bool = True, save_path: Optional[str] = None) -> None:
    r"""
    Optionally save and show a figure, then always close it.

    Closing prevents figure accumulation when events are drawn in a loop; in
    headless mode ``plt.show()`` may be patched to a no-op.
    """
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150)
        logger.info("Saved figure to %s", save_path)
    if do_show:
        plt.show()
    plt.close(fig)


def _axes(xyz: np.ndarray, flip: bool) -> np.ndarray:
    # flipped view puts the detector's vertical y on the plot's z axis
    if flip:
        return np.column_stack([xyz[:, 0], -xyz[:, 2], xyz[:, 1]])
    return xyz


def plot_event_3d(
    result: EventResult,
    catalog: Optional[GeometryCatalog] = None,
    *,
    config: ReconstructionConfig = DEFAULT_CONFIG,
    wire_stride: int = 50,
    flip: bool = False,
    show: bool = True,
    save_path: Optional[str] = None,
) -> None:
    r"""
    Draw one event in 3D.

    Layers, back to front: every ``wire_stride``-th wire (grey), CRT hits
    (blue), projected bottom endpoints of completed tracks (green),
    reconstructed space points (red), and the accepted tracks from their
    top-most endpoint down to :math:`y_\min` (black).

    Parameters
    ----------
    result : EventResult
    catalog : GeometryCatalog, optional
        Enables drawing of wires.
    flip : bool
        Plot :math:`(x, -z, y)` instead of :math:`(x, y, z)`.
    """
    fig = plt.figure(figsize=(7, 7))
    ax = fig.add_subplot(111, projection="3d")

    if catalog is not None and wire_stride > 0:
        for w in catalog.wires[::wire_stride]:
            seg = _axes(np.array([w.start, w.end], dtype=np.float64), flip)
            ax.plot(seg[:, 0], seg[:, 1], seg[:, 2], "-", color="0.7", lw=0.5)

    crt = np.array([h.position for h in result.hits.crt_hits], dtype=np.float64).reshape(-1, 3)
    if crt.size:
        c = _axes(crt, flip)
        ax.scatter(c[:, 0], c[:, 1], c[:, 2], s=8, color="tab:blue", label="CRT hits")

    proj = np.array([t.bot for t in result.tracks if t.is_complete], dtype=np.float64).reshape(-1, 3)
    if proj.size:
        p = _axes(proj, flip)
        ax.scatter(p[:, 0], p[:, 1], p[:, 2], s=8, color="tab:green", label="projected bottom")

    pts = np.vstack([ps.xyz for ps in result.points])
    if pts.size:
        q = _axes(pts, flip)
        ax.scatter(q[:, 0], q[:, 1], q[:, 2], s=2, color="tab:red", label="intersections")

    for i, track in enumerate(result.matches):
        top = np.array(track.topmost, dtype=np.float64)
        end = np.array(track.project_y(config.y_min), dtype=np.float64)
        seg = _axes(np.vstack([top, end]), flip)
        ax.plot(seg[:, 0], seg[:, 1], seg[:, 2], "-", color="k", lw=1.2,
                label="matches" if i == 0 else None)

    ax.set_title(f"Event {result.index}: {result.n_matches} matches")
    ax.legend(loc="upper left", fontsize="small")
    _show_and_close(fig, do_show=show, save_path=save_path)


def plot_real_fraction(
    summary: RunSummary,
    bins: int = 10,
    *,
    show: bool = True,
    save_path: Optional[str] = None,
) -> None:
    """Histogram of the per-event fraction of CRT hits explained by accepted tracks."""
    counts, edges = summary.real_fraction_histogram(bins)
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.stairs(counts, edges, fill=True, alpha=0.6)
    ax.set_xlabel("real CRT hit fraction")
    ax.set_ylabel("events")
    ax.set_title(f"percent real hits ({len(summary)} events)")
    _show_and_close(fig, do_show=show, save_path=save_path)
