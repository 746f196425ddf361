"""
Polygon sets: named regions (e.g. Census tracts) with a stable key and
a fixed positional order.
"""

import geopandas as gpd
import pandas as pd
from loguru import logger

from . import config
from .errors import FetchError, KeyIntegrityError
from .keys import check_unique, normalize_keys


class PolygonSet:
    """
    An ordered set of polygons keyed by a unique string identifier.

    The source attributes are kept as supplied and the source order is
    kept as the positional order. Geometries are held in EPSG:4326.

    Args:
        gdf: polygon geometries and their attributes (GeoDataFrame)
        key: name of the attribute holding the identifier, or a callable
            that takes a row's attributes (dict) and returns it
        key_col: name of the column the normalized keys are stored in
    Raises:
        KeyIntegrityError: if a key is missing or repeated
    """

    def __init__(self, gdf, key, key_col=config.KEY_COL):
        frame = gdf.copy()

        # Sources without a CRS are taken to be lon/lat already.
        if frame.crs is None:
            frame = frame.set_crs(config.WGS84)
        elif not frame.crs.equals(config.WGS84):
            frame = frame.to_crs(config.WGS84)
        frame = frame.reset_index(drop=True)

        if callable(key):
            attributes = pd.DataFrame(frame.drop(columns=frame.geometry.name))
            raw_keys = [key(row) for row in attributes.to_dict("records")]
        elif key in frame.columns:
            raw_keys = frame[key]
        else:
            raise KeyIntegrityError(
                f"Polygon attributes have no key field '{key}'. "
                f"Available fields: {list(frame.columns)}"
            )

        if key_col in frame.columns and key != key_col:
            raise ValueError(f"Polygon attributes already hold a '{key_col}' column")

        keys = normalize_keys(raw_keys)
        keys.index = frame.index
        check_unique(keys, "polygon")
        frame[key_col] = keys

        self.key_col = key_col
        self._frame = frame
        self._positions = {k: i for i, k in enumerate(keys)}

    def __len__(self):
        return len(self._frame)

    def __iter__(self):
        """Yield (key, geometry) pairs in order."""
        return iter(zip(self.keys, self._frame.geometry))

    def __repr__(self):
        return f"PolygonSet({len(self)} polygons)"

    @property
    def keys(self):
        return self._frame[self.key_col].tolist()

    @property
    def frame(self):
        """A copy of the attributes, key column and geometry."""
        return self._frame.copy()

    @property
    def geometry(self):
        return self._frame.geometry.copy()

    @property
    def crs(self):
        return self._frame.crs

    @property
    def bounds(self):
        """(minx, miny, maxx, maxy) of the whole set."""
        return tuple(self._frame.total_bounds)

    def position(self, key):
        """Positional index of `key` in the set."""
        try:
            return self._positions[key]
        except KeyError:
            raise KeyIntegrityError(f"No polygon with key '{key}'") from None

    def area_km2(self, crs=config.AREA_CRS):
        """
        Area of each polygon in square kilometres.
        Args:
            crs: projected equal-area CRS to measure in (default: EPSG:6933)
        Returns:
            pandas Series indexed by key
        """
        projected = self._frame.to_crs(crs)
        return pd.Series(
            projected.geometry.area.to_numpy() / 1_000_000,
            index=pd.Index(self.keys, name=self.key_col),
            name="area_km2",
        )

#______________________________________________________________________________

def load_polygons(source, key, key_col=config.KEY_COL):
    """
    Build a PolygonSet from a file, URL, GeoJSON mapping or GeoDataFrame.
    Args:
        source: anything geopandas.read_file accepts, a GeoJSON
            FeatureCollection (dict) or a GeoDataFrame
        key: identifier field name or callable (see PolygonSet)
    Returns:
        PolygonSet
    Raises:
        FetchError: if the source cannot be read
        KeyIntegrityError: if a key is missing or repeated
    """
    if isinstance(source, gpd.GeoDataFrame):
        gdf = source
    elif isinstance(source, dict):
        try:
            gdf = gpd.GeoDataFrame.from_features(source["features"], crs=config.WGS84)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise FetchError(f"Invalid GeoJSON feature collection: {exc}") from exc
    else:
        try:
            gdf = gpd.read_file(source)
        except Exception as exc:
            raise FetchError(f"Could not read polygons from {source}: {exc}") from exc

    polygon_set = PolygonSet(gdf, key, key_col=key_col)
    logger.info(f"Loaded {len(polygon_set):,} polygons")
    return polygon_set
