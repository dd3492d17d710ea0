__all__ = [
    "ReconstructionConfig", "DEFAULT_CONFIG", "load_config",
    "CrtRecoError", "ConfigError", "GeometryError",
    "Wire", "CRTStrip", "GeometryCatalog", "load_wires", "load_strips",
    "CRTHit", "WireHit", "EventHits", "ClassifiedHits", "classify_crt_hits", "RootHitSource",
    "CRTTrack", "build_candidate_tracks",
    "PointSet", "intersection", "wire_hit_intersections",
    "HeightIndex", "HeightBin",
    "score_track", "score_tracks", "sample_path",
    "deduplicate_tracks",
    "EventResult", "process_event", "process_events",
    "RunSummary",
]

# Configuration & errors
from .config import ReconstructionConfig, DEFAULT_CONFIG, load_config
from .errors import CrtRecoError, ConfigError, GeometryError

# Geometry & hits
from .geometry import Wire, CRTStrip, GeometryCatalog, load_wires, load_strips
from .hits import (
    CRTHit,
    WireHit,
    EventHits,
    ClassifiedHits,
    classify_crt_hits,
    RootHitSource,
)

# Reconstruction stages
from .tracks import CRTTrack, build_candidate_tracks
from .intersect import PointSet, intersection, wire_hit_intersections
from .height_index import HeightIndex, HeightBin
from .scoring import score_track, score_tracks, sample_path
from .dedup import deduplicate_tracks

# Event drivers & reporting (plotting imported lazily by callers)
from .pipeline import EventResult, process_event
from .parallel import process_events
from .histograms import RunSummary
