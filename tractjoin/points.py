"""
Point loading: turn raw incident records into (id, lat, lon) points.

Records come from a JSON endpoint, a local CSV/JSON file, a DataFrame or a
list of dicts. A record with a missing id or a missing, non-numeric or
out-of-range coordinate is dropped and counted; it never fails the load.
A source that cannot be read at all raises FetchError.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd
import requests
from loguru import logger

from . import config
from .errors import FetchError


@dataclass(frozen=True)
class FieldMap:
    """Names of the source fields holding the point id, latitude and longitude."""

    id: str
    lat: str
    lon: str

    @classmethod
    def from_mapping(cls, mapping):
        return cls(id=mapping["id"], lat=mapping["lat"], lon=mapping["lon"])


DEFAULT_FIELDS = FieldMap.from_mapping(config.DEFAULT_POINT_FIELDS)


@dataclass(frozen=True)
class PointLoad:
    """Parsed points, the number of records dropped and why."""

    points: gpd.GeoDataFrame
    dropped: int
    reasons: dict = field(default_factory=dict)

#______________________________________________________________________________

def records_from_json(payload, records_key=None):
    """
    Extract a list of records from a decoded JSON document.
    Accepts a bare list, an object wrapping the list (e.g. Carto's
    {"rows": [...]}) or a GeoJSON FeatureCollection, whose feature
    properties become the records.
    Args:
        payload: decoded JSON (list or dict)
        records_key: key of the record list inside an object (string,
            default: first of config.RECORD_LIST_KEYS present)
    Returns:
        list of dicts
    Raises:
        FetchError: if no record list can be found
    """
    if isinstance(payload, list):
        return payload

    if not isinstance(payload, dict):
        raise FetchError(f"Expected a JSON list or object, got {type(payload).__name__}")

    if payload.get("type") == "FeatureCollection":
        return [feature.get("properties") or {} for feature in payload.get("features", [])]

    candidates = [records_key] if records_key else list(config.RECORD_LIST_KEYS)
    for candidate in candidates:
        if isinstance(payload.get(candidate), list):
            return payload[candidate]

    raise FetchError(f"No record list found under keys {candidates}")

#______________________________________________________________________________

def fetch_records(url, params=None, records_key=None, timeout=config.HTTP_TIMEOUT):
    """
    Fetch point records from a JSON endpoint with a single GET request.
    Args:
        url: endpoint URL (string)
        params: query string parameters (dict, optional)
        records_key: key of the record list in the response (string, optional)
        timeout: seconds before giving up (number)
    Returns:
        pandas DataFrame with one row per record
    Raises:
        FetchError: on connection or HTTP errors, or a body that is not
            JSON holding a record list
    """
    logger.info(f"Fetching point records from {url}")
    try:
        response = requests.get(url, params=params, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"Could not fetch {url}: {exc}") from exc

    try:
        payload = response.json()
    except ValueError as exc:
        raise FetchError(f"Response from {url} is not valid JSON: {exc}") from exc

    return pd.DataFrame.from_records(records_from_json(payload, records_key))

#______________________________________________________________________________

def read_records(path, records_key=None):
    """
    Read point records from a local CSV or JSON/GeoJSON file.
    Raises:
        FetchError: if the file is missing, unreadable or of another type
    """
    path = Path(path)
    ext = path.suffix.lower()
    if ext not in (".csv", ".json", ".geojson"):
        raise FetchError(f"Unsupported point file type: {path.name}")

    try:
        if ext == ".csv":
            # Keep raw text so bad coordinates fail per record, not per column
            return pd.read_csv(path, dtype=str, keep_default_na=False)
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError) as exc:
        raise FetchError(f"Could not read {path}: {exc}") from exc

    return pd.DataFrame.from_records(records_from_json(payload, records_key))

#______________________________________________________________________________

def _coordinate_text(value):
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, str):
        return value.strip()
    return value


def _to_coordinate(values):
    """Numeric coordinates; booleans, blanks and text become NaN."""
    return pd.to_numeric(values.map(_coordinate_text), errors="coerce").astype(float)


def parse_points(records, fields=DEFAULT_FIELDS, crs=config.WGS84):
    """
    Normalize raw records into a point GeoDataFrame.
    Coordinates are coerced to numbers, then records with a missing id,
    a missing or non-numeric coordinate, or a coordinate outside
    [-90, 90] / [-180, 180] are dropped.
    Args:
        records: raw records (DataFrame)
        fields: source field names for id/lat/lon (FieldMap)
        crs: CRS of the coordinates (string, default: EPSG:4326)
    Returns:
        PointLoad with columns id, lat, lon, geometry, the dropped count
        and the number of records failing each check
    Raises:
        FetchError: if a mapped field is absent from every record
    """
    if len(records):
        absent = [f for f in (fields.id, fields.lat, fields.lon) if f not in records.columns]
        if absent:
            raise FetchError(
                f"Point records have no field(s) {absent}. "
                f"Available fields: {list(records.columns)}"
            )
        df = pd.DataFrame({
            "id": records[fields.id].to_numpy(),
            "lat": _to_coordinate(records[fields.lat]).to_numpy(),
            "lon": _to_coordinate(records[fields.lon]).to_numpy(),
        })
    else:
        df = pd.DataFrame({
            "id": pd.Series([], dtype=object),
            "lat": pd.Series([], dtype=float),
            "lon": pd.Series([], dtype=float),
        })

    # Drop reasons, checked in order; a record counts under its first failure.
    no_id = df["id"].astype("string").str.strip().fillna("").eq("").to_numpy(dtype=bool)
    no_coordinate = ~no_id & (df["lat"].isna() | df["lon"].isna()).to_numpy()
    in_range = (df["lat"].between(-90, 90) & df["lon"].between(-180, 180)).to_numpy()
    out_of_range = ~no_id & ~no_coordinate & ~in_range

    reasons = {
        "missing id": int(no_id.sum()),
        "missing or non-numeric coordinate": int(no_coordinate.sum()),
        "coordinate out of range": int(out_of_range.sum()),
    }
    for reason, n in reasons.items():
        if n:
            logger.debug(f"{n:,} point records dropped: {reason}")

    kept = df[~(no_id | no_coordinate | out_of_range)].reset_index(drop=True)
    points = gpd.GeoDataFrame(
        kept, geometry=gpd.points_from_xy(kept["lon"], kept["lat"]), crs=crs
    )
    return PointLoad(points=points, dropped=len(df) - len(kept), reasons=reasons)

#______________________________________________________________________________

def load_points(source, fields=None, params=None, records_key=None):
    """
    Load points from a URL, a file path, a DataFrame or a list of dicts.
    Args:
        source: where the records come from
        fields: source field names (FieldMap or mapping, default:
            config.DEFAULT_POINT_FIELDS)
        params: query parameters when `source` is a URL (dict, optional)
        records_key: key of the record list in JSON sources (optional)
    Returns:
        PointLoad
    Raises:
        FetchError: if the source cannot be read as a whole
    """
    if fields is None:
        fields = DEFAULT_FIELDS
    elif not isinstance(fields, FieldMap):
        fields = FieldMap.from_mapping(fields)

    if isinstance(source, pd.DataFrame):
        records = pd.DataFrame(source)
    elif isinstance(source, list):
        records = pd.DataFrame.from_records(source)
    elif str(source).startswith(("http://", "https://")):
        records = fetch_records(str(source), params=params, records_key=records_key)
    else:
        records = read_records(source, records_key=records_key)

    load = parse_points(records, fields)
    logger.info(f"Loaded {len(load.points):,} points from {len(records):,} records")
    if load.dropped:
        logger.warning(
            f"Dropped {load.dropped:,} point records with a missing id "
            f"or a missing/invalid coordinate"
        )
    return load
