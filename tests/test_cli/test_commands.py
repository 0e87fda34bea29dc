"""Tests for the feed-tracker CLI commands."""

import asyncio
import json
from contextlib import asynccontextmanager

import pytest
from click.testing import CliRunner

from feed_tracker import cli
from feed_tracker.errors import FeedFetchError
from feed_tracker.feeds.schemas import SourceFeed
from feed_tracker.scheduler.service import FeedScheduler

A = "https://a.test/feed.xml"
B = "https://b.test/feed.xml"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def patched_cli(monkeypatch, memory_storage, stub_fetcher, recording_sink, metrics):
    """Route the CLI at in-memory storage and a stub fetcher."""

    @asynccontextmanager
    async def open_storage():
        yield memory_storage

    @asynccontextmanager
    async def open_scheduler(sink_kind=None):
        yield FeedScheduler(stub_fetcher, recording_sink, metrics=metrics)

    monkeypatch.setattr(cli, "open_storage", open_storage)
    monkeypatch.setattr(cli, "open_scheduler", open_scheduler)
    return memory_storage


class TestAddSource:
    def test_add(self, runner, patched_cli):
        result = runner.invoke(cli.main, ["add-source", "--url", A, "--title", "A"])

        assert result.exit_code == 0
        assert f"Added source feed {A}" in result.output

    def test_duplicate_exits_nonzero(self, runner, patched_cli):
        runner.invoke(cli.main, ["add-source", "--url", A])
        result = runner.invoke(cli.main, ["add-source", "--url", A])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_blank_url_exits_nonzero(self, runner, patched_cli):
        result = runner.invoke(cli.main, ["add-source", "--url", "   "])

        assert result.exit_code == 1
        assert "Invalid source feed" in result.output
        assert isinstance(result.exception, SystemExit)


class TestImportSources:
    def test_import(self, runner, patched_cli, tmp_path):
        path = tmp_path / "feeds.json"
        path.write_text(json.dumps([{"url": A, "title": "A"}, {"url": A}, {"url": B}]))

        result = runner.invoke(cli.main, ["import-sources", str(path)])

        assert result.exit_code == 0
        assert "Imported 2 source feeds (1 already present)" in result.output

    def test_missing_file(self, runner, patched_cli, tmp_path):
        result = runner.invoke(cli.main, ["import-sources", str(tmp_path / "nope.json")])
        assert result.exit_code == 2

    def test_malformed_json_exits_nonzero(self, runner, patched_cli, tmp_path):
        path = tmp_path / "feeds.json"
        path.write_text('[{"url": "https://a.test/feed.xml"')

        result = runner.invoke(cli.main, ["import-sources", str(path)])

        assert result.exit_code == 1
        assert "Cannot import" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_invalid_entry_exits_nonzero(self, runner, patched_cli, tmp_path):
        path = tmp_path / "feeds.json"
        path.write_text(json.dumps([{"url": A}, {"title": "no url"}]))

        result = runner.invoke(cli.main, ["import-sources", str(path)])

        assert result.exit_code == 1
        assert "Entry 1" in result.output
        assert isinstance(result.exception, SystemExit)
        assert asyncio.run(patched_cli.list_source_feeds()) == {}


class TestRunOnce:
    def test_nothing_configured(self, runner, patched_cli):
        result = runner.invoke(cli.main, ["run-once"])

        assert result.exit_code == 0
        assert "No source feeds configured" in result.output

    def test_reports_new_items(self, runner, patched_cli, stub_fetcher, rss):
        runner.invoke(cli.main, ["add-source", "--url", A])
        stub_fetcher.documents[A] = rss(["g1", "g2"])

        result = runner.invoke(cli.main, ["run-once"])

        assert result.exit_code == 0
        assert "Snapshots stored: 1" in result.output
        assert "New items:        2" in result.output
        assert "+ Episode g1" in result.output

    def test_errors_exit_nonzero(self, runner, patched_cli, stub_fetcher, rss):
        async def seed():
            await patched_cli.put_source_feed(SourceFeed.create(A))
            await patched_cli.put_source_feed(SourceFeed.create(B))

        asyncio.run(seed())
        stub_fetcher.documents[A] = FeedFetchError("HTTP 500", url=A, status_code=500)
        stub_fetcher.documents[B] = rss(["b1"])

        result = runner.invoke(cli.main, ["run-once"])

        assert result.exit_code == 1
        assert f"[fetch] {A}: HTTP 500" in result.output
        assert "Snapshots stored: 1" in result.output
