import geopandas as gpd
import pytest
from loguru import logger
from shapely.geometry import Point, Polygon, box

from tractjoin.polygons import PolygonSet

# A and B share the edge x = 1; C has a hole.
TRACT_C = Polygon(
    [(3, 0), (5, 0), (5, 2), (3, 2)],
    holes=[[(3.2, 0.2), (3.8, 0.2), (3.8, 0.8), (3.2, 0.8)]],
)


@pytest.fixture
def tracts_gdf():
    return gpd.GeoDataFrame(
        {
            "GEOID": ["A", "B", "C"],
            "NAME": ["Tract A", "Tract B", "Tract C"],
            "population": [1200, 800, 3100],
        },
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1), TRACT_C],
        crs="EPSG:4326",
    )


@pytest.fixture
def tracts(tracts_gdf):
    return PolygonSet(tracts_gdf, key="GEOID")


@pytest.fixture
def shooting_records():
    """Two shootings in A, one in B, none in C."""
    return [
        {"objectid": 1, "lat": 0.5, "lng": 0.5},
        {"objectid": 2, "lat": 0.25, "lng": 0.75},
        {"objectid": 3, "lat": 0.5, "lng": 1.5},
    ]


@pytest.fixture
def log_messages():
    """Collect loguru messages at WARNING and above."""
    messages = []
    handler_id = logger.add(messages.append, level="WARNING", format="{message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_points():
    """Build a point GeoDataFrame from (lon, lat) pairs."""

    def _make(coords, index=None):
        return gpd.GeoDataFrame(
            {"id": list(range(len(coords)))},
            geometry=[Point(c) for c in coords],
            index=index,
            crs="EPSG:4326",
        )

    return _make
