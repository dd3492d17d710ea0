#!/usr/bin/env python3
r"""
CRT / TPC track matching runner.

Loads the wire (and optionally strip) geometry once, streams events from a
hitdumper ROOT file, matches CRT track candidates against TPC space points,
and reports per-event real-hit fractions plus stage timings.

CLI overview
------------
See :func:`build_parser` for all options. Typical usage:

.. code-block:: bash

   crt-reco -f hitdumper_tree.root --wires ../WireDumpSBND.txt
   crt-reco -f hitdumper_tree.root -n 12 --output draw --strips ../StripDumpSBND.txt
   crt-reco -f hitdumper_tree.root --parallel --output histogram --bins 20
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from crt_reco.config import load_config
from crt_reco.errors import CrtRecoError
from crt_reco.geometry import GeometryCatalog
from crt_reco.histograms import RunSummary
from crt_reco.hits import RootHitSource
from crt_reco.parallel import process_events
from crt_reco.profiling import STAGES, prof

OUTPUT_MODES = ("none", "draw", "histogram")


def build_parser() -> argparse.ArgumentParser:
    r"""
    Construct the command-line interface.

    Notes
    -----
    Key options:

    - ``-n``: zero-indexed event to process, ``-1`` for all.
    - ``--output``: ``draw`` renders the single selected event in 3D,
      ``histogram`` plots the real-hit fraction over all processed events.
    - ``--parallel``/``--workers``: run events on a thread pool.
    - ``--config``: JSON object overriding
      :class:`~crt_reco.config.ReconstructionConfig` fields.
    """
    p = argparse.ArgumentParser(description="Match CRT tracks to TPC wire-hit intersections.")
    p.add_argument("-n", "--event", type=int, default=-1,
                   help="Zero-indexed event to look at, or -1 for all events (default: -1).")
    p.add_argument("-f", "--file", type=str, default="hitdumper_tree.root",
                   help="hitdumper ROOT file (default: hitdumper_tree.root).")
    p.add_argument("--tree", type=str, default="hitdumper/hitdumpertree",
                   help="Tree path inside the ROOT file.")
    p.add_argument("--wires", type=str, default="../WireDumpSBND.txt",
                   help="Wire geometry dump (default: ../WireDumpSBND.txt).")
    p.add_argument("--strips", type=str, default=None,
                   help="CRT strip geometry dump (optional; drawing only).")
    p.add_argument("--bins", type=int, default=10,
                   help="Bins of the real-hit fraction histogram (default: 10).")
    p.add_argument("--output", type=str, choices=OUTPUT_MODES, default="none",
                   help="What to draw after processing (default: none).")
    p.add_argument("--save", type=str, default=None,
                   help="Save the figure to this path instead of only showing it.")
    p.add_argument("--parallel", action="store_true", default=False,
                   help="Process events concurrently.")
    p.add_argument("--workers", type=int, default=None,
                   help="Worker threads with --parallel (default: CPU count).")
    p.add_argument("--config", type=str, default="config.json",
                   help="Path to JSON configuration overrides (default: config.json).")
    p.add_argument("--profile", action="store_true", default=False,
                   help="Enable cProfile around event processing.")
    p.add_argument("--profile-out", type=str, default=None,
                   help="Write binary .pstats here when --profile is set.")
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Enable verbose logging.")
    return p


def setup_logging(verbose: bool = False) -> None:
    r"""
    Configure process-wide logging.

    Format is ``'%(asctime)s | %(levelname)-8s | %(message)s'`` with
    ``%H:%M:%S`` timestamps; ``DEBUG`` when ``verbose`` else ``INFO``.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


def apply_plotting_guard(enable_plots: bool) -> None:
    r"""
    Force the non-interactive ``Agg`` backend when nothing will be drawn.

    Must run before :mod:`crt_reco.plotting` is imported.
    """
    if enable_plots:
        return
    os.environ.setdefault("MPLBACKEND", "Agg")
    import matplotlib
    matplotlib.use("Agg", force=True)


def main(argv: Optional[List[str]] = None) -> int:
    r"""
    End-to-end run: **geometry → events → match → report**.

    Returns
    -------
    int
        Process exit status: ``0`` on success, ``2`` for invalid arguments,
        ``1`` when geometry/config loading, reading the hit file or event
        processing fails.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.output == "draw" and args.event == -1:
        logging.error("Cannot draw every event at once; pass a specific (zero-indexed) event with -n")
        return 2

    apply_plotting_guard(args.output != "none" and args.save is None)

    try:
        config = load_config(Path(args.config))
        catalog = GeometryCatalog.from_files(args.wires, args.strips)
    except CrtRecoError as e:
        logging.error("%s", e)
        return 1

    if args.event >= 0:
        source = RootHitSource(args.file, args.tree, entry_start=args.event, entry_stop=args.event + 1)
    else:
        source = RootHitSource(args.file, args.tree)

    workers = (args.workers or None) if args.parallel else 1
    summary = RunSummary()
    last = None
    try:
        with prof(args.profile, dump_path=args.profile_out, logger=logging.getLogger("crt_reco.profile")):
            for result in process_events(source.events(), catalog, config, max_workers=workers):
                logging.info("Event %d: realPct = %.4f (%d/%d CRT hits, %d matches)",
                             result.index, result.real_fraction, result.n_real,
                             result.n_crt_hits, result.n_matches)
                summary.add(result)
                last = result
    except (CrtRecoError, OSError) as e:
        logging.error("Event processing failed: %s", e)
        return 1

    if not len(summary):
        logging.warning("No events were processed from %s", args.file)
        return 0

    totals = summary.timing_totals()
    for stage in ("total",) + STAGES:
        logging.info("%sTime = %d us", stage, int(round(totals[stage] * 1e6)))

    if args.output == "draw":
        import crt_reco.plotting as crt_plot
        crt_plot.plot_event_3d(last, catalog, config=config, show=args.save is None, save_path=args.save)
    elif args.output == "histogram":
        import crt_reco.plotting as crt_plot
        crt_plot.plot_real_fraction(summary, args.bins, show=args.save is None, save_path=args.save)
    return 0


if __name__ == "__main__":
    sys.exit(main())
