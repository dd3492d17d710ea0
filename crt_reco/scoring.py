from __future__ import annotations

import logging
import math
from typing import Dict, Iterator, Sequence, Tuple

import numpy as np

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig
from crt_reco.geometry import Vector3
from crt_reco.height_index import HeightIndex
from crt_reco.tracks import CRTTrack

logger = logging.getLogger(__name__)


def sample_path(track: CRTTrack, config: ReconstructionConfig = DEFAULT_CONFIG) -> Iterator[Vector3]:
    r"""
    Walk down a track in fixed vertical steps.

    Starting at the top-most endpoint :math:`p_0`, successive samples are

    .. math::

        p_{k+1} = p_k - \Delta\,(s_x,\; 1,\; s_z),

    accumulated step by step. The walk stops at the first sample with
    :math:`y \le y_\min`; samples with :math:`y > y_\max` are skipped.
    Degenerate (horizontal) tracks yield nothing.
    """
    if track.is_degenerate:
        return
    sx, sz = track.slopes
    step = config.sample_step
    dx, dz = sx * step, sz * step
    x, y, z = track.topmost
    while y > config.y_min:
        if y <= config.y_max:
            yield (x, y, z)
        x -= dx
        y -= step
        z -= dz


def _count_near(block: np.ndarray, y: float, z: float, max_dist: float) -> int:
    # comparison point takes the reconstructed point's x, so only (y, z) differ
    dy = y - block[:, 1]
    dz = z - block[:, 2]
    return int(np.count_nonzero(np.sqrt(dy * dy + dz * dz) < max_dist))


def score_track(
    track: CRTTrack,
    indexes: Sequence[HeightIndex],
    config: ReconstructionConfig = DEFAULT_CONFIG,
) -> float:
    r"""
    Fraction of examined space points that lie on the track.

    At every sample :math:`p` of :func:`sample_path`, the height index of the
    half on :math:`p`'s side (``indexes[0]`` when ``signbit(p_x)``, else
    ``indexes[1]``) returns the points of :math:`p`'s bin and of its nearer
    neighbour bin. Each returned point :math:`q` is *examined*; it *matches*
    when

    .. math::

        \sqrt{(p_y-q_y)^2 + (p_z-q_z)^2} < d_\text{match}.

    Returns
    -------
    float
        ``matches / examined`` in :math:`[0, 1]`, or ``0.0`` when nothing was
        examined.
    """
    if track.is_degenerate:
        logger.debug("Track %d is horizontal; scoring 0", track.track_id)
        return 0.0

    matched = 0
    total = 0
    max_dist = config.match_distance
    for x, y, z in sample_path(track, config):
        index = indexes[0] if math.copysign(1.0, x) < 0 else indexes[1]
        at, near = index.at_y(y)
        total += at.ids.size
        matched += _count_near(at.xyz, y, z, max_dist)
        if near is not None:
            total += near.ids.size
            matched += _count_near(near.xyz, y, z, max_dist)

    if total == 0:
        return 0.0
    return matched / total


def score_tracks(
    tracks: Sequence[CRTTrack],
    indexes: Tuple[HeightIndex, HeightIndex],
    config: ReconstructionConfig = DEFAULT_CONFIG,
) -> Dict[int, float]:
    """Score every track; returns ``track_id -> score``."""
    return {t.track_id: score_track(t, indexes, config) for t in tracks}
