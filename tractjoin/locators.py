"""
Point-in-polygon containment.

A locator maps every point to the key of the polygon that covers it.
All locators share one tie-break rule:

* a point on a polygon's boundary (edge or vertex) is inside it;
* a point strictly inside a hole is outside, a point on a hole's ring
  is on the boundary and therefore inside;
* a point covered by several polygons (e.g. on a shared edge) goes to
  the polygon that comes first in the PolygonSet.
"""

import geopandas as gpd
import pandas as pd
from shapely.geometry import MultiPolygon, Polygon


class PointLocator:
    """Interface for containment tests."""

    def locate(self, points, polygon_set):
        """
        Args:
            points: point geometries in the PolygonSet's CRS (GeoDataFrame)
            polygon_set: candidate polygons (PolygonSet)
        Returns:
            pandas Series of keys ("string" dtype, <NA> when no polygon
            covers the point) with the same index as `points`
        """
        raise NotImplementedError

    @staticmethod
    def _result(keys, points, key_col):
        return pd.Series(keys, index=points.index, dtype="string", name=key_col)


class RayCastingLocator(PointLocator):
    """
    Even-odd ray casting over every ring of every polygon part, behind a
    bounding-box prefilter. Handles non-convex polygons, holes and
    multipolygons.

    Args:
        tolerance: distance (in coordinate units) within which a point
            counts as lying on an edge
    """

    def __init__(self, tolerance=1e-12):
        self.tolerance = tolerance

    def locate(self, points, polygon_set):
        shapes = [
            (key, _parts(geom)) for key, geom in polygon_set
            if geom is not None and not geom.is_empty
        ]
        keys = [self._find(pt.x, pt.y, shapes) for pt in points.geometry]
        return self._result(keys, points, polygon_set.key_col)

    def _find(self, x, y, shapes):
        for key, parts in shapes:
            for bounds, rings in parts:
                minx, miny, maxx, maxy = bounds
                if not (minx <= x <= maxx and miny <= y <= maxy):
                    continue
                if self.covers(rings, x, y):
                    return key
        return pd.NA

    def covers(self, rings, x, y):
        """True if (x, y) is inside or on the boundary of one polygon part."""
        inside = False
        for ring in rings:
            for (x1, y1), (x2, y2) in zip(ring, ring[1:]):
                if _on_segment(x, y, x1, y1, x2, y2, self.tolerance):
                    return True
                # Half-open rule so a vertex on the ray is crossed once
                if (y1 > y) != (y2 > y):
                    x_cross = x1 + (y - y1) * (x2 - x1) / (y2 - y1)
                    if x < x_cross:
                        inside = not inside
        return inside


class SpatialIndexLocator(PointLocator):
    """
    Spatial join against the polygons' spatial index using the
    `covered_by` predicate (boundary counts as inside).
    """

    def locate(self, points, polygon_set):
        if len(points) == 0 or len(polygon_set) == 0:
            return self._result([pd.NA] * len(points), points, polygon_set.key_col)

        key_col = polygon_set.key_col
        frame = polygon_set.frame
        polygons = gpd.GeoDataFrame(
            {key_col: frame[key_col], "_position": range(len(frame))},
            geometry=frame.geometry.to_numpy(),
            crs=polygon_set.crs,
        )

        # Positional index on the left so repeated point labels survive
        left = gpd.GeoDataFrame(geometry=points.geometry.to_numpy(), crs=polygon_set.crs)
        joined = gpd.sjoin(left, polygons, how="left", predicate="covered_by")

        # Several matches per point: keep the earliest polygon
        joined = joined.sort_values("_position", kind="stable")
        first = joined[~joined.index.duplicated(keep="first")].sort_index()

        return self._result(first[key_col].to_numpy(), points, key_col)


def default_locator():
    return SpatialIndexLocator()

#______________________________________________________________________________

def _ring_coords(ring):
    return [(c[0], c[1]) for c in ring.coords]


def _parts(geom):
    """[(bounds, rings)] for each polygon part of a (Multi)Polygon."""
    if isinstance(geom, Polygon):
        polygons = [geom]
    elif isinstance(geom, MultiPolygon):
        polygons = list(geom.geoms)
    else:
        raise TypeError(f"Expected Polygon or MultiPolygon, got {geom.geom_type}")

    return [
        (part.bounds, [_ring_coords(part.exterior)] + [_ring_coords(r) for r in part.interiors])
        for part in polygons if not part.is_empty
    ]


def _on_segment(x, y, x1, y1, x2, y2, tolerance):
    if not (min(x1, x2) - tolerance <= x <= max(x1, x2) + tolerance):
        return False
    if not (min(y1, y2) - tolerance <= y <= max(y1, y2) + tolerance):
        return False
    cross = (x2 - x1) * (y - y1) - (y2 - y1) * (x - x1)
    length = abs(x2 - x1) + abs(y2 - y1)
    return abs(cross) <= tolerance * max(length, 1.0)
