"""Join point incidents to Census tracts, count them and merge tract-level data."""

from .aggregate import Aggregation, aggregate_points, assign_points, density_per_polygon
from .diagnostics import RunSummary, summarize_dataframe
from .entities import load_entities, make_synthetic_entities, summarize_entities
from .errors import (
    FetchError,
    KeyIntegrityError,
    TractJoinError,
    UnmatchedPointWarning,
)
from .locators import PointLocator, RayCastingLocator, SpatialIndexLocator
from .merge import align_to_polygons, attach_to_geometry, outer_join
from .pipeline import PipelineResult, run_pipeline
from .points import FieldMap, PointLoad, fetch_records, load_points, parse_points, read_records
from .polygons import PolygonSet, load_polygons

__all__ = [
    "Aggregation",
    "FetchError",
    "FieldMap",
    "KeyIntegrityError",
    "PipelineResult",
    "PointLoad",
    "PointLocator",
    "PolygonSet",
    "RayCastingLocator",
    "RunSummary",
    "SpatialIndexLocator",
    "TractJoinError",
    "UnmatchedPointWarning",
    "aggregate_points",
    "align_to_polygons",
    "assign_points",
    "attach_to_geometry",
    "density_per_polygon",
    "fetch_records",
    "load_entities",
    "load_points",
    "load_polygons",
    "make_synthetic_entities",
    "outer_join",
    "parse_points",
    "read_records",
    "run_pipeline",
    "summarize_dataframe",
    "summarize_entities",
]
