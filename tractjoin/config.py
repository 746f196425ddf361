"""
Default data sources and settings for the tract join pipeline.
"""

# Philadelphia shooting victims (Carto SQL API, JSON rows)
SHOOTINGS_URL = "https://phl.carto.com/api/v2/sql"
SHOOTINGS_QUERY = "SELECT objectid, lat, lng FROM shootings"

# 2010 Census tracts for Philadelphia (GeoJSON)
TRACTS_URL = (
    "https://opendata.arcgis.com/datasets/"
    "8bc0786524a4486bb3cf0f9862ad0fbf_0.geojson"
)
TRACT_KEY_FIELD = "GEOID10"

# Source fields holding id / latitude / longitude
DEFAULT_POINT_FIELDS = {"id": "objectid", "lat": "lat", "lon": "lng"}

# Keys under which a JSON response may wrap its list of records
RECORD_LIST_KEYS = ("rows", "data", "records")

# Column names used across the pipeline
KEY_COL = "key"
COUNT_COL = "count"

# Geographic CRS for all geometries, equal-area CRS for area measurement
WGS84 = "EPSG:4326"
AREA_CRS = "EPSG:6933"

# Seconds before a single fetch gives up
HTTP_TIMEOUT = 60

# Column of the research-subject file holding the tract identifier
ENTITY_KEY_FIELD = "geoid10"
