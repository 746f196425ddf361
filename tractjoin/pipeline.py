"""
One run of the tract join: load points and polygons, count points per
polygon, merge per-polygon entity summaries and re-attach the result to
the polygon geometry for rendering.
"""

from dataclasses import dataclass

import geopandas as gpd
from loguru import logger

from . import config
from .aggregate import aggregate_points
from .diagnostics import RunSummary
from .entities import load_entities, summarize_entities
from .merge import align_to_polygons, attach_to_geometry, outer_join
from .points import load_points
from .polygons import load_polygons


@dataclass(frozen=True)
class PipelineResult:
    """Polygons with merged attributes, plus run counts."""

    frame: gpd.GeoDataFrame
    summary: RunSummary

#______________________________________________________________________________

def run_pipeline(
    point_source=config.SHOOTINGS_URL,
    polygon_source=config.TRACTS_URL,
    entity_source=None,
    polygon_key=config.TRACT_KEY_FIELD,
    entity_key=config.ENTITY_KEY_FIELD,
    point_fields=None,
    point_params=None,
    value_cols=(),
    stats=("mean",),
    locator=None,
):
    """
    Run every stage once and return a table ready for a choropleth.

    Args:
        point_source: URL, file path, DataFrame or list of dicts with
            point records
        polygon_source: file path, URL, GeoJSON mapping or GeoDataFrame
            with the polygons
        entity_source: path or DataFrame with entity records (optional)
        polygon_key: polygon attribute (or callable) giving the key
        entity_key: entity column holding the polygon key
        point_fields: source names of id/lat/lon (FieldMap or mapping)
        point_params: query parameters for a URL point source (dict,
            default: the shootings query when reading config.SHOOTINGS_URL)
        value_cols: entity columns to summarize per key (list of strings)
        stats: statistics computed for each value column
        locator: containment test (PointLocator, default: spatial index)

    Returns:
        PipelineResult. `frame` has one row per polygon in source order
        with the key, the point count, entity summary columns (missing
        where a polygon has no entities) and the polygon geometry.

    Raises:
        FetchError: if a source cannot be read
        KeyIntegrityError: if keys are missing or repeated where they
            must be unique, or the result cannot be aligned with the
            polygons
    """

    default_source = isinstance(point_source, str) and point_source == config.SHOOTINGS_URL
    if point_params is None and default_source:
        point_params = {"q": config.SHOOTINGS_QUERY}

    # Stage 1 and 2 are independent.
    point_load = load_points(point_source, fields=point_fields, params=point_params)
    polygon_set = load_polygons(polygon_source, key=polygon_key)

    # Stage 3: counts per polygon, empty polygons included.
    aggregation = aggregate_points(point_load.points, polygon_set, locator=locator)
    table = aggregation.table

    # Stage 4: merge entity summaries by key.
    outside = 0
    if entity_source is not None:
        entities = load_entities(entity_source, key_field=entity_key)
        entity_summary=summarize_entities(entities, value_cols, stats=stats)
        outside = len(set(entity_summary[config.KEY_COL]) - set(polygon_set.keys))
        table = outer_join(
            aggregation.table,
            entity_summary,
            names=("points", "entities"),
        )

    aligned = align_to_polygons(table, polygon_set)
    frame = attach_to_geometry(aligned, polygon_set)

    summary = RunSummary(
        points_loaded=len(point_load.points),
        points_dropped=point_load.dropped,
        points_unmatched=aggregation.unmatched,
        polygons=len(polygon_set),
        polygons_without_points=int((aggregation.table[config.COUNT_COL] == 0).sum()),
        entity_keys_outside_polygons=outside,
    )
    logger.info(f"Run summary: {summary.as_dict()}")

    return PipelineResult(frame=frame, summary=summary)
