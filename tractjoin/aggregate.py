"""
Spatial aggregation: assign points to polygons and count points per polygon.
"""

import warnings
from dataclasses import dataclass

import geopandas as gpd
import pandas as pd
from loguru import logger

from . import config
from .errors import UnmatchedPointWarning
from .locators import default_locator


@dataclass(frozen=True)
class Aggregation:
    """
    Result of aggregate_points.

    table: one row per polygon, in PolygonSet order (key, count)
    unmatched: number of points outside every polygon
    assigned: the points with the key of their polygon (<NA> if unmatched)
    """

    table: pd.DataFrame
    unmatched: int
    assigned: gpd.GeoDataFrame

#______________________________________________________________________________

def assign_points(points, polygon_set, locator=None):
    """
    Determine which polygon each point falls into and attach its key.
    Args:
        points: point locations (GeoDataFrame)
        polygon_set: polygons to test against (PolygonSet)
        locator: containment test (PointLocator, default: spatial index)
    Returns:
        GeoDataFrame: a copy of points with a key column. Retains all
        original points; unmatched points get <NA>.
    """
    locator = locator or default_locator()

    # Work in the polygons' CRS.
    points = points.copy()
    if points.crs is None:
        points = points.set_crs(polygon_set.crs)
    elif points.crs != polygon_set.crs:
        points = points.to_crs(polygon_set.crs)

    points[polygon_set.key_col] = locator.locate(points, polygon_set)
    return points

#______________________________________________________________________________

def aggregate_points(points, polygon_set, locator=None, count_col=config.COUNT_COL):
    """
    Count points per polygon, including polygons that received none.
    Rows are built from the PolygonSet keys rather than from the keys
    observed on points, so empty polygons get an explicit 0.
    Args:
        points: point locations (GeoDataFrame)
        polygon_set: polygons to count into (PolygonSet)
        locator: containment test (PointLocator, default: spatial index)
        count_col: name of the count column (string)
    Returns:
        Aggregation
    """
    key_col = polygon_set.key_col
    assigned = assign_points(points, polygon_set, locator)

    counts = (
        assigned[key_col]
        .value_counts()
        .reindex(polygon_set.keys, fill_value=0)
    )
    table = pd.DataFrame({
        key_col: pd.Series(polygon_set.keys, dtype="string"),
        count_col: counts.to_numpy(dtype="int64"),
    })

    unmatched = int(assigned[key_col].isna().sum())
    empty = int((table[count_col] == 0).sum())
    logger.info(
        f"Aggregated {len(assigned) - unmatched:,} points into "
        f"{len(table):,} polygons ({empty:,} without points)"
    )
    if unmatched:
        logger.warning(f"{unmatched:,} points fell outside every polygon")
        warnings.warn(
            f"{unmatched} point(s) fell outside every polygon and were not counted",
            UnmatchedPointWarning,
            stacklevel=2,
        )

    return Aggregation(table=table, unmatched=unmatched, assigned=assigned)

#______________________________________________________________________________

def density_per_polygon(table, polygon_set, count_col=config.COUNT_COL, crs=config.AREA_CRS):
    """
    Add polygon area and points per square kilometre to an aggregate table.

    Returns a new DataFrame with the columns of `table` plus
    [area_km2, <count_col>_per_km2].
    """
    key_col = polygon_set.key_col
    area = polygon_set.area_km2(crs)

    density = table.copy()
    density["area_km2"] = area.reindex(density[key_col].astype(str)).to_numpy()

    # Points per square kilometre, rounded to the nearest tenth
    density[f"{count_col}_per_km2"] = (
        (density[count_col] / density["area_km2"]).round(1)
    )
    return density
