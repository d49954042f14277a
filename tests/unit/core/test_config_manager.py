"""Unit tests for ConfigManager."""

import pytest

from page_streamer.core.config_manager import ConfigManager, get_config_manager


SAMPLE = """\
# Stream target
page_url = "https://game.example/view"
ingest_url = rtmp://ingest.example/live   # primary
ingest_key = 'key123'

resolution = 1920x1080
framerate = 60
browser_timeout = 20
stop_grace = 3.5
require_browser_ready = yes
unrelated = value
not a setting
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.txt"
    path.write_text(SAMPLE, encoding="utf-8")
    return path


class TestParsing:

    def test_read_config(self, config_file):
        config = ConfigManager().read_config(config_file)

        assert config["page_url"] == "https://game.example/view"
        assert config["ingest_url"] == "rtmp://ingest.example/live"
        assert config["ingest_key"] == "key123"
        assert config["unrelated"] == "value"
        assert "not a setting" not in config

    def test_missing_file_is_empty(self, tmp_path):
        assert ConfigManager().read_config(tmp_path / "nope.txt") == {}

    @pytest.mark.asyncio
    async def test_read_config_async_matches_sync(self, config_file):
        manager = ConfigManager()
        assert await manager.read_config_async(config_file) == manager.read_config(config_file)

    @pytest.mark.asyncio
    async def test_read_config_async_missing_file(self, tmp_path):
        assert await ConfigManager().read_config_async(tmp_path / "nope.txt") == {}


class TestTypedGetters:

    @pytest.mark.parametrize("raw, expected", [
        ("true", True), ("1", True), ("on", True), ("YES", True),
        ("false", False), ("0", False), ("nah", False),
    ])
    def test_get_bool(self, raw, expected):
        assert ConfigManager().get_bool({"flag": raw}, "flag") is expected

    def test_get_int_invalid_uses_default(self):
        assert ConfigManager().get_int({"n": "ten"}, "n", 7) == 7

    def test_get_float(self):
        manager = ConfigManager()
        assert manager.get_float({"x": "2.5"}, "x") == 2.5
        assert manager.get_float({}, "x", 1.0) == 1.0


class TestPipelineSettings:

    def test_splits_pipeline_and_timing_keys(self):
        manager = ConfigManager()
        pipeline, timings = manager.pipeline_settings(manager._parse_config_lines(SAMPLE.splitlines()))

        assert pipeline == {
            "page_url": "https://game.example/view",
            "ingest_url": "rtmp://ingest.example/live",
            "ingest_key": "key123",
            "resolution": "1920x1080",
            "framerate": 60,
        }
        assert timings == {
            "browser_timeout": 20.0,
            "stop_grace": 3.5,
            "require_browser_ready": True,
        }

    def test_empty_config(self):
        assert ConfigManager().pipeline_settings({}) == ({}, {})

    @pytest.mark.asyncio
    async def test_load_pipeline_settings(self, config_file):
        pipeline, timings = await get_config_manager().load_pipeline_settings(config_file)
        assert pipeline["ingest_key"] == "key123"
        assert timings["stop_grace"] == 3.5
