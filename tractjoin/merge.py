"""
Table merging: full outer joins by key, and re-ordering merged tables to
match a PolygonSet so they can be re-attached to geometry by position.
"""

import geopandas as gpd
import pandas as pd
from loguru import logger

from . import config
from .errors import KeyIntegrityError
from .keys import check_unique, normalize_keys


def _keyed(table, key, name):
    """Copy `table` with its key normalized, checking the key is usable."""
    table = pd.DataFrame(table).copy()
    if key not in table.columns:
        raise KeyIntegrityError(
            f"The {name} table has no key column '{key}'. "
            f"Available columns: {table.columns.tolist()}"
        )
    table[key] = normalize_keys(table[key])
    check_unique(table[key], name)
    return table


def _nullable_ints(table, key):
    return {
        c: "Int64" for c in table.columns
        if c != key and pd.api.types.is_integer_dtype(table[c])
    }

#______________________________________________________________________________

def outer_join(left, right, left_on=config.KEY_COL, right_on=None, names=("left", "right")):
    """
    Full outer join of two keyed tables.
    Every key present on either side appears exactly once. Values from
    the side lacking a row are missing (NaN / <NA>), never 0. Non-key
    columns present on both sides are renamed "<column>_<name>".
    Args:
        left: keyed table, e.g. point counts per polygon (DataFrame)
        right: keyed table, e.g. per-key entity summaries (DataFrame)
        left_on: key column of `left`, also the key column of the output
        right_on: key column of `right` (default: same as left_on)
        names: labels of the two sides used to rename colliding columns
    Returns:
        pandas DataFrame sorted by key
    Raises:
        KeyIntegrityError: if a side lacks its key column or its keys are
            missing or repeated
    """
    right_on = right_on or left_on
    left_name, right_name = names
    if left_name == right_name:
        raise ValueError("The two sides of a join need different names")

    left = _keyed(left, left_on, left_name)
    right = _keyed(right, right_on, right_name)

    # Columns that would collide in the output, key column included
    left_cols = set(left.columns) - {left_on}
    right_cols = set(right.columns) - {right_on}
    overlap = left_cols & right_cols
    left = left.rename(columns={c: f"{c}_{left_name}" for c in overlap})
    right = right.rename(columns={
        c: f"{c}_{right_name}" for c in overlap | (right_cols & {left_on})
    })
    right = right.rename(columns={right_on: left_on})

    # Integer columns become nullable so gaps do not turn them into floats
    left = left.astype(_nullable_ints(left, left_on))
    right = right.astype(_nullable_ints(right, left_on))

    merged = left.merge(right, on=left_on, how="outer", sort=True)
    logger.debug(
        f"Outer join of {len(left):,} {left_name} and {len(right):,} "
        f"{right_name} rows gave {len(merged):,} rows"
    )
    return merged.reset_index(drop=True)

#______________________________________________________________________________

def align_to_polygons(merged, polygon_set, key=config.KEY_COL):
    """
    Re-order a merged table to match a PolygonSet's positional order.
    Rows are looked up by key, never taken by position. Rows whose key
    is not in the PolygonSet are dropped.
    Args:
        merged: table with one row per key (DataFrame)
        polygon_set: the order to match (PolygonSet)
        key: key column of `merged` (string)
    Returns:
        pandas DataFrame with one row per polygon, in PolygonSet order,
        with the columns of `merged` and a fresh RangeIndex
    Raises:
        KeyIntegrityError: if a polygon key is absent from `merged`, or
            `merged` has missing or repeated keys
    """
    if key not in merged.columns:
        raise KeyIntegrityError(f"Merged table has no key column '{key}'")

    lookup = normalize_keys(merged[key])
    check_unique(lookup, "merged")

    positions = pd.Index(lookup).get_indexer(polygon_set.keys)
    missing = [k for k, p in zip(polygon_set.keys, positions) if p == -1]
    if missing:
        raise KeyIntegrityError(
            f"{len(missing)} polygon key(s) missing from the merged table: "
            f"{missing[:5]}"
        )

    extra = len(merged) - len(polygon_set)
    if extra:
        logger.warning(f"Dropping {extra:,} merged rows whose key matches no polygon")

    return merged.iloc[positions].reset_index(drop=True)

#______________________________________________________________________________

def attach_to_geometry(aligned, polygon_set, key=config.KEY_COL):
    """
    Put polygon geometry back onto a table aligned with align_to_polygons.
    The alignment is checked row by row before any geometry is attached.
    Args:
        aligned: table in PolygonSet order (DataFrame)
        polygon_set: source of the geometry (PolygonSet)
        key: key column of `aligned` (string)
    Returns:
        GeoDataFrame with the attributes of `aligned` and the polygon
        geometry, unchanged, in EPSG:4326
    Raises:
        KeyIntegrityError: if any row's key differs from the polygon at
            the same position
    """
    if len(aligned) != len(polygon_set):
        raise KeyIntegrityError(
            f"Table has {len(aligned):,} rows but there are "
            f"{len(polygon_set):,} polygons"
        )

    observed = normalize_keys(aligned[key]).fillna("").tolist()
    misplaced = [
        i for i, (found, expected) in enumerate(zip(observed, polygon_set.keys))
        if found != expected
    ]
    if misplaced:
        raise KeyIntegrityError(
            f"{len(misplaced)} row(s) are not aligned with their polygon, "
            f"first at position {misplaced[0]}"
        )

    attributes = pd.DataFrame(aligned).reset_index(drop=True)
    attributes = attributes.drop(columns=[c for c in ("geometry",) if c in attributes.columns])
    return gpd.GeoDataFrame(
        attributes,
        geometry=polygon_set.geometry.to_numpy(),
        crs=polygon_set.crs,
    )
