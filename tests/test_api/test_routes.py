"""Tests for the query API routes."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from feed_tracker.api.app import create_app
from feed_tracker.api.auth import verify_api_key
from feed_tracker.api.dependencies import get_database, get_feed_storage
from feed_tracker.config.settings import get_settings
from feed_tracker.errors import StorageError
from feed_tracker.feeds.parser import parse_feed_document
from feed_tracker.feeds.schemas import SourceFeed
from feed_tracker.storage.memory import InMemoryFeedStorage

A = "https://a.test/feed.xml"
B = "https://b.test/feed.xml"


@pytest.fixture
def populated_storage(rss) -> InMemoryFeedStorage:
    storage = InMemoryFeedStorage()

    async def populate():
        await storage.put_source_feed(SourceFeed.create(A, "Feed A"))
        await storage.put_source_feed(SourceFeed.create(B, "Feed B"))
        await storage.put_snapshot(parse_feed_document(A, rss(["a1"])))
        await storage.put_snapshot(parse_feed_document(A, rss(["a1", "a2"])))
        await storage.put_snapshot(parse_feed_document(B, rss(["b1"])))

    asyncio.run(populate())
    return storage


@pytest.fixture
def mock_db() -> AsyncMock:
    db = AsyncMock()
    db.health_check.return_value = True
    return db


@pytest.fixture
def client(populated_storage, mock_db):
    app = create_app()
    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_feed_storage] = lambda: populated_storage
    app.dependency_overrides[get_database] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class TestHealth:
    def test_healthy(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["database"]["status"] == "healthy"

    def test_unhealthy(self, client, mock_db):
        mock_db.health_check.return_value = False
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "unhealthy"


class TestSources:
    def test_list(self, client):
        response = client.get("/sources")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [s["url"] for s in data["sources"]] == [A, B]
        assert len(data["sources"][0]["content_hash"]) == 16

    def test_lookup(self, client):
        response = client.get("/sources/lookup", params={"url": A})
        assert response.status_code == 200
        assert response.json()["title"] == "Feed A"

    def test_lookup_missing(self, client):
        response = client.get("/sources/lookup", params={"url": "https://nope.test/"})
        assert response.status_code == 404

    def test_create(self, client):
        response = client.post("/sources", json={"url": "https://c.test/rss", "title": "C"})
        assert response.status_code == 201
        assert response.json()["url"] == "https://c.test/rss"
        assert client.get("/sources").json()["total"] == 3

    def test_create_duplicate(self, client):
        response = client.post("/sources", json={"url": A})
        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

    def test_create_blank_url(self, client):
        response = client.post("/sources", json={"url": "   "})
        assert response.status_code == 422

    def test_storage_failure(self, client, populated_storage, monkeypatch):
        monkeypatch.setattr(
            populated_storage,
            "list_source_feeds",
            AsyncMock(side_effect=StorageError("down")),
        )
        response = client.get("/sources")
        assert response.status_code == 503


class TestSnapshots:
    def test_history_grouped_newest_first(self, client):
        response = client.get("/snapshots")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert set(data["sources"]) == {A, B}
        counts = [s["item_count"] for s in data["sources"][A]]
        assert counts == [2, 1]

    def test_history_for_one_source(self, client):
        response = client.get("/snapshots", params={"source_url": B})
        data = response.json()
        assert list(data["sources"]) == [B]
        assert data["total"] == 1

    def test_history_for_unknown_source(self, client):
        response = client.get("/snapshots", params={"source_url": "https://nope.test/"})
        assert response.json() == {"sources": {}, "total": 0}

    def test_latest(self, client):
        response = client.get("/snapshots/latest")
        assert response.status_code == 200
        sources = response.json()["sources"]
        assert sources[A]["item_count"] == 2
        assert sources[B]["item_count"] == 1

    def test_get_by_id(self, client):
        snapshot_id = client.get("/snapshots/latest").json()["sources"][B]["snapshot_id"]
        response = client.get(f"/snapshots/{snapshot_id}")
        assert response.status_code == 200
        body = response.json()
        assert body["source_url"] == B
        assert body["snapshot"]["items"][0]["guid"] == "b1"

    def test_storage_failure(self, client, populated_storage, monkeypatch):
        monkeypatch.setattr(
            populated_storage,
            "latest_snapshots",
            AsyncMock(side_effect=StorageError("snapshot table missing")),
        )
        response = client.get("/snapshots/latest")
        assert response.status_code == 503
        assert response.json()["detail"] == "Feed storage unavailable"

    def test_get_missing(self, client):
        response = client.get("/snapshots/999999")
        assert response.status_code == 404


class TestAuth:
    @pytest.fixture
    def secured_client(self, populated_storage, monkeypatch):
        monkeypatch.setenv("API_KEYS", "secret-1, secret-2")
        get_settings.cache_clear()
        app = create_app()
        app.dependency_overrides[get_feed_storage] = lambda: populated_storage
        with TestClient(app) as c:
            yield c
        get_settings.cache_clear()

    def test_missing_key(self, secured_client):
        assert secured_client.get("/sources").status_code == 401

    def test_wrong_key(self, secured_client):
        response = secured_client.get("/sources", headers={"X-API-KEY": "nope"})
        assert response.status_code == 401

    def test_valid_key(self, secured_client):
        response = secured_client.get("/sources", headers={"X-API-KEY": "secret-2"})
        assert response.status_code == 200
