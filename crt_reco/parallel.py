from __future__ import annotations

import logging
import os
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Deque, Iterable, Iterator, Optional

from crt_reco.config import DEFAULT_CONFIG, ReconstructionConfig
from crt_reco.geometry import GeometryCatalog
from crt_reco.hits import EventHits
from crt_reco.pipeline import EventResult, process_event

logger = logging.getLogger(__name__)


def process_events(
    events: Iterable[EventHits],
    catalog: GeometryCatalog,
    config: ReconstructionConfig = DEFAULT_CONFIG,
    *,
    max_workers: Optional[int] = None,
    window: Optional[int] = None,
) -> Iterator[EventResult]:
    r"""
    Process events on a thread pool, yielding results in input order.

    At most ``window`` events (default ``2 * max_workers``) are in flight, so
    the input iterator is consumed lazily and memory stays bounded. Each task
    owns its event-local state; workers only share the read-only ``catalog``
    and ``config``.

    Parameters
    ----------
    events : iterable of EventHits
    catalog : GeometryCatalog
    config : ReconstructionConfig
    max_workers : int, optional
        Pool size; defaults to :func:`os.cpu_count`. ``1`` runs everything in
        the calling thread.
    window : int, optional
        Maximum number of submitted but not yet yielded events.

    Yields
    ------
    EventResult
        One per input event, in the same order.

    Raises
    ------
    Exception
        The first exception raised by a worker is re-raised when its event
        reaches the front of the window.
    """
    workers = int(max_workers or os.cpu_count() or 1)
    if workers <= 1:
        for event in events:
            yield process_event(event, catalog, config)
        return

    limit = max(1, int(window or 2 * workers))
    logger.info("Processing events on %d threads (window %d)", workers, limit)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="crt-reco") as pool:
        in_flight: Deque[Future] = deque()
        for event in events:
            in_flight.append(pool.submit(process_event, event, catalog, config))
            if len(in_flight) >= limit:
                yield in_flight.popleft().result()
        while in_flight:
            yield in_flight.popleft().result()
