import json

import pytest
from fastapi.testclient import TestClient

from kokudo_sticker import api
from kokudo_sticker.geocoding import GeocodeCandidate
from kokudo_sticker.errors import GeocodingFailed
from kokudo_sticker.main import create_app
from kokudo_sticker.repository import create_repository


@pytest.fixture
def client(tmp_path):
    app = create_app(create_repository(tmp_path / "api.db", edit_strategy="recreate"))
    with TestClient(app) as c:
        yield c


def _add(client, **fields):
    body = {"roadNumber": 246, "prefecture": "東京都", "date": "2024-05-01"}
    body.update(fields)
    res = client.post("/api/records", json=body)
    assert res.status_code == 201, res.text
    return res.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_add_and_list(client):
    created = _add(client)
    assert isinstance(created["id"], int)
    assert created["createdAt"]

    listing = client.get("/api/records").json()
    assert listing["count"] == 1
    [record] = listing["records"]
    assert (record["roadNumber"], record["prefecture"], record["date"]) == (246, "東京都", "2024-05-01")

    stats = client.get("/api/stats").json()["summary"]
    assert stats["total"] == 1
    assert stats["distinctPrefectures"] == 1
    assert stats["topPrefecture"] == "東京都"
    assert stats["topCount"] == 1


def test_add_validation_error(client):
    res = client.post("/api/records", json={"roadNumber": -1, "prefecture": "東京都"})
    assert res.status_code == 422
    res = client.post("/api/records", json={"roadNumber": True, "prefecture": "東京都"})
    assert res.status_code == 422
    res = client.post("/api/records", json={"roadNumber": 1, "prefecture": "東京都", "photos": ["data:image/png;base64,!!"]})
    assert res.status_code == 422
    assert client.get("/api/records").json()["total"] == 0


def test_search_and_order(client):
    _add(client, roadNumber=1, prefecture="大阪府", date="2024-01-01")
    _add(client, roadNumber=2, prefecture="大阪府", date="2024-03-01")
    _add(client, roadNumber=3, prefecture="東京都", date="2024-02-01")

    listing = client.get("/api/records", params={"q": "大阪"}).json()
    assert [r["roadNumber"] for r in listing["records"]] == [2, 1]
    assert listing["total"] == 3
    assert len(client.get("/api/records").json()["records"]) == 3


def test_histogram(client):
    _add(client, prefecture="東京都")
    _add(client, prefecture="東京都")
    _add(client, prefecture="大阪府")
    summary = client.get("/api/stats").json()["summary"]
    assert summary["histogram"] == [
        {"prefecture": "東京都", "count": 2},
        {"prefecture": "大阪府", "count": 1},
    ]


def test_edit_replaces_record(client):
    created = _add(client, location="渋谷")
    res = client.put(f"/api/records/{created['id']}", json={"notes": "updated"})
    assert res.status_code == 200
    body = res.json()
    assert body["strategy"] == "recreate"
    assert body["record"]["id"] != created["id"]
    assert body["record"]["notes"] == "updated"
    assert body["record"]["location"] == "渋谷"
    assert client.get(f"/api/records/{created['id']}").status_code == 404


def test_edit_unknown(client):
    assert client.put("/api/records/999", json={"notes": "x"}).status_code == 404


def test_delete_and_clear(client):
    created = _add(client)
    assert client.delete(f"/api/records/{created['id']}").status_code == 200
    assert client.delete(f"/api/records/{created['id']}").status_code == 200
    _add(client)
    assert client.delete("/api/records").json() == {"cleared": True}
    assert client.delete("/api/records").json() == {"cleared": True}
    assert client.get("/api/records").json()["count"] == 0


def test_export_and_import(client):
    assert client.get("/api/export").status_code == 404
    _add(client, roadNumber=1)
    _add(client, roadNumber=2)

    res = client.get("/api/export")
    assert res.status_code == 200
    assert "kokudo-sticker-" in res.headers["content-disposition"]
    document = res.content

    client.delete("/api/records")
    res = client.post("/api/import", content=document, headers={"Content-Type": "application/json"})
    assert res.json() == {"imported": 2}
    exported = json.loads(document)
    listing = client.get("/api/records").json()["records"]
    assert sorted(r["createdAt"] for r in listing) == sorted(r["createdAt"] for r in exported)


def test_import_invalid(client):
    _add(client)
    res = client.post("/api/import", content=b'{"not": "an array"}')
    assert res.status_code == 400
    assert client.get("/api/records").json()["count"] == 1


def test_photo_upload(client):
    res = client.post("/api/photos", content=b"\xff\xd8\xff", headers={"Content-Type": "image/jpeg"})
    assert res.status_code == 200
    assert res.json()["photo"].startswith("data:image/jpeg;base64,")
    res = client.post("/api/photos", content=b"hi", headers={"Content-Type": "text/plain"})
    assert res.status_code == 415


def test_geocode(client, monkeypatch):
    async def fake_geocode(q):
        return [GeocodeCandidate("渋谷区, 東京都", 35.66, 139.70)]

    monkeypatch.setattr(api, "geocode", fake_geocode)
    body = client.get("/api/geocode", params={"q": "渋谷"}).json()
    assert body["candidates"] == [{"displayName": "渋谷区, 東京都", "latitude": 35.66, "longitude": 139.70}]
    assert client.get("/api/geocode", params={"q": " "}).status_code == 400


def test_geocode_upstream_failure(client, monkeypatch):
    async def failing(q):
        raise GeocodingFailed("down")

    monkeypatch.setattr(api, "geocode", failing)
    assert client.get("/api/geocode", params={"q": "渋谷"}).status_code == 502
