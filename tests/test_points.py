import json

import pandas as pd
import pytest
import requests

from tractjoin.errors import FetchError
from tractjoin.points import (
    FieldMap,
    fetch_records,
    load_points,
    parse_points,
    read_records,
    records_from_json,
)

FIELDS = FieldMap(id="objectid", lat="lat", lon="lng")


class FakeResponse:
    def __init__(self, payload=None, status=200, invalid_json=False):
        self.payload = payload
        self.status = status
        self.invalid_json = invalid_json

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} Server Error")

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class TestParsePoints:

    def test_valid_records(self, shooting_records):
        load = parse_points(pd.DataFrame(shooting_records), FIELDS)

        assert load.dropped == 0
        assert load.points["id"].tolist() == [1, 2, 3]
        assert load.points["lat"].tolist() == [0.5, 0.25, 0.5]
        assert load.points.crs == "EPSG:4326"
        first = load.points.geometry.iloc[0]
        assert (first.x, first.y) == (0.5, 0.5)

    def test_bad_records_are_dropped_and_counted(self):
        records = pd.DataFrame([
            {"objectid": 1, "lat": "39.95", "lng": "-75.16"},
            {"objectid": 2, "lat": "not a number", "lng": "-75.16"},
            {"objectid": 3, "lat": None, "lng": "-75.16"},
            {"objectid": 4, "lat": "95.0", "lng": "-75.16"},
            {"objectid": 5, "lat": "39.95", "lng": "-190"},
            {"objectid": None, "lat": "39.95", "lng": "-75.16"},
            {"objectid": 7, "lat": "", "lng": "-75.16"},
        ])

        load = parse_points(records, FIELDS)

        assert load.dropped == 6
        assert load.points["id"].tolist() == [1]
        assert load.points["lat"].iloc[0] == pytest.approx(39.95)

    def test_drop_reasons_are_counted(self):
        records = pd.DataFrame([
            {"objectid": 1, "lat": " 0.5 ", "lng": "0.5"},
            {"objectid": 2, "lat": True, "lng": 0.5},
            {"objectid": 3, "lat": 0.5, "lng": False},
            {"objectid": "", "lat": 0.5, "lng": 0.5},
            {"objectid": 5, "lat": 91, "lng": 0.5},
        ])

        load = parse_points(records, FIELDS)

        assert load.points["id"].tolist() == [1]
        assert load.dropped == 4
        assert load.reasons == {
            "missing id": 1,
            "missing or non-numeric coordinate": 2,
            "coordinate out of range": 1,
        }

    def test_boolean_coordinate_column(self):
        records = pd.DataFrame({"objectid": [1, 2], "lat": [True, False], "lng": [0.5, 0.5]})
        load = parse_points(records, FIELDS)
        assert load.dropped == 2
        assert len(load.points) == 0

    def test_range_limits_are_inclusive(self):
        records = pd.DataFrame([{"objectid": "x", "lat": -90, "lng": 180}])
        assert parse_points(records, FIELDS).dropped == 0

    def test_empty_records(self):
        load = parse_points(pd.DataFrame(), FIELDS)
        assert load.dropped == 0
        assert len(load.points) == 0
        assert list(load.points.columns) == ["id", "lat", "lon", "geometry"]

    def test_missing_field_fails_the_load(self):
        records = pd.DataFrame([{"objectid": 1, "latitude": 0.5, "lng": 0.5}])
        with pytest.raises(FetchError, match="latitude|lat"):
            parse_points(records, FIELDS)


class TestRecordsFromJson:

    def test_bare_list(self):
        assert records_from_json([{"a": 1}]) == [{"a": 1}]

    def test_carto_rows(self):
        payload = {"rows": [{"a": 1}], "time": 0.01, "total_rows": 1}
        assert records_from_json(payload) == [{"a": 1}]

    def test_explicit_key(self):
        assert records_from_json({"items": [{"a": 1}]}, records_key="items") == [{"a": 1}]

    def test_feature_collection(self):
        payload = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "properties": {"a": 1}, "geometry": None},
                {"type": "Feature", "properties": None, "geometry": None},
            ],
        }
        assert records_from_json(payload) == [{"a": 1}, {}]

    def test_no_record_list(self):
        with pytest.raises(FetchError):
            records_from_json({"error": "bad query"})


class TestFetchRecords:

    def test_fetch(self, monkeypatch, shooting_records):
        calls = []

        def fake_get(url, params=None, timeout=None):
            calls.append((url, params, timeout))
            return FakeResponse({"rows": shooting_records})

        monkeypatch.setattr(requests, "get", fake_get)
        records = fetch_records("https://example.org/sql", params={"q": "SELECT 1"}, timeout=5)

        assert len(records) == 3
        assert calls == [("https://example.org/sql", {"q": "SELECT 1"}, 5)]

    def test_http_error(self, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda *a, **kw: FakeResponse(status=503))
        with pytest.raises(FetchError, match="503 Server Error"):
            fetch_records("https://example.org/sql")

    def test_connection_error(self, monkeypatch):
        def fake_get(*args, **kwargs):
            raise requests.ConnectionError("Name or service not known")

        monkeypatch.setattr(requests, "get", fake_get)
        with pytest.raises(FetchError, match="Name or service not known") as info:
            fetch_records("https://example.org/sql")
        assert isinstance(info.value.__cause__, requests.ConnectionError)

    def test_invalid_json(self, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda *a, **kw: FakeResponse(invalid_json=True))
        with pytest.raises(FetchError, match="not valid JSON"):
            fetch_records("https://example.org/sql")


class TestReadRecords:

    def test_csv(self, tmp_path):
        path = tmp_path / "shootings.csv"
        path.write_text("objectid,lat,lng\n1,0.5,0.5\n2,,0.5\n3,abc,0.5\n")

        load = load_points(path, fields=FIELDS)

        assert load.points["id"].tolist() == ["1"]
        assert load.dropped == 2

    def test_json(self, tmp_path, shooting_records):
        path = tmp_path / "shootings.json"
        path.write_text(json.dumps({"rows": shooting_records}))

        assert len(read_records(path)) == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FetchError):
            read_records(tmp_path / "nope.csv")

    def test_unsupported_type(self, tmp_path):
        with pytest.raises(FetchError, match="Unsupported"):
            read_records(tmp_path / "shootings.xml")


class TestLoadPoints:

    def test_list_source_with_default_fields(self, shooting_records):
        load = load_points(shooting_records)
        assert len(load.points) == 3

    def test_mapping_fields(self):
        records = [{"ID": "a", "Y": 1.0, "X": 2.0}]
        load = load_points(records, fields={"id": "ID", "lat": "Y", "lon": "X"})
        assert load.points["lon"].tolist() == [2.0]

    def test_url_source(self, monkeypatch, shooting_records):
        monkeypatch.setattr(
            requests, "get", lambda *a, **kw: FakeResponse({"rows": shooting_records})
        )
        load = load_points("https://example.org/sql", params={"q": "SELECT 1"})
        assert load.points["id"].tolist() == [1, 2, 3]

    def test_drops_are_logged(self, log_messages):
        records = [
            {"objectid": 1, "lat": 0.5, "lng": 0.5},
            {"objectid": 2, "lat": "n/a", "lng": 0.5},
        ]
        load = load_points(records)

        assert load.dropped == 1
        assert any("Dropped 1 point records" in m for m in log_messages)

    def test_source_is_not_mutated(self, shooting_records):
        records = pd.DataFrame(shooting_records)
        before = records.copy()
        load_points(records)
        pd.testing.assert_frame_equal(records, before)
