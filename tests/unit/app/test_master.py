"""Unit tests for the streamer entrypoint."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from page_streamer.app.master import (
    EXIT_BAD_CONFIG,
    EXIT_OK,
    EXIT_START_FAILED,
    build_overlay_url,
    main,
    parse_args,
    resolve_settings,
    supervise,
)
from page_streamer.core.errors import DependencyMissing
from page_streamer.core.pipeline_types import HealthSnapshot


REQUIRED = ["--page-url", "https://game.example", "--ingest-url", "rtmp://a/live", "--ingest-key", "k1"]


class TestOverlayUrl:

    def test_builds_overlay_view(self):
        assert build_overlay_url("https://game.example/", "tok") == (
            "https://game.example/stream-overlay?apiKey=tok&embedded=true"
        )

    def test_token_is_url_encoded(self):
        url = build_overlay_url("https://game.example", "a b&c")
        assert "apiKey=a%20b%26c" in url


class TestResolveSettings:

    def test_cli_only(self):
        config, timings = resolve_settings(parse_args(REQUIRED), {}, {}, environ={})

        assert config.page_url == "https://game.example"
        assert config.ingest_target == "rtmp://a/live/k1"
        assert config.resolution == "1280x720"
        assert timings.browser_timeout == 15.0

    def test_precedence_cli_env_file(self):
        args = parse_args(["--ingest-key", "from-cli"])
        file_pipeline = {
            "page_url": "https://file.example",
            "ingest_url": "rtmp://file/live",
            "ingest_key": "from-file",
            "bitrate": "4000k",
        }
        environ = {
            "PAGE_STREAMER_INGEST_URL": "rtmp://env/live",
            "PAGE_STREAMER_INGEST_KEY": "from-env",
        }

        config, _ = resolve_settings(args, file_pipeline, {}, environ=environ)

        assert config.page_url == "https://file.example"
        assert config.ingest_url == "rtmp://env/live"
        assert config.ingest_key == "from-cli"
        assert config.bitrate == "4000k"

    def test_missing_required_named_as_flags(self):
        with pytest.raises(ValueError) as exc_info:
            resolve_settings(parse_args(["--page-url", "https://x.example"]), {}, {}, environ={})

        assert "--ingest-url" in str(exc_info.value)
        assert "--ingest-key" in str(exc_info.value)
        assert "--page-url" not in str(exc_info.value)

    def test_overlay_rewrites_page_url(self):
        args = parse_args(REQUIRED + ["--overlay", "--auth-token", "tok"])
        config, _ = resolve_settings(args, {}, {}, environ={})

        assert config.page_url == "https://game.example/stream-overlay?apiKey=tok&embedded=true"
        assert config.auth_token == "tok"

    def test_timing_overrides(self):
        args = parse_args(REQUIRED + ["--browser-timeout", "30", "--require-browser-ready"])
        _, timings = resolve_settings(args, {}, {"stop_grace": 4.0, "require_browser_ready": False}, environ={})

        assert timings.browser_timeout == 30.0
        assert timings.stop_grace == 4.0
        assert timings.require_browser_ready is True

    def test_file_timing_kept_without_flag(self):
        _, timings = resolve_settings(parse_args(REQUIRED), {}, {"require_browser_ready": True}, environ={})
        assert timings.require_browser_ready is True

    def test_bad_framerate_from_file(self):
        with pytest.raises(ValueError):
            resolve_settings(parse_args(REQUIRED), {"framerate": -1}, {}, environ={})


class TestParseArgs:

    def test_rejects_malformed_resolution(self):
        with pytest.raises(SystemExit):
            parse_args(["--resolution", "big"])

    def test_normalises_resolution_and_bitrate(self):
        args = parse_args(["--resolution", "1920X1080", "--bitrate", "3000K"])
        assert args.resolution == "1920x1080"
        assert args.bitrate == "3000k"


class TestSupervise:

    @pytest.mark.asyncio
    async def test_warns_once_per_degradation(self, caplog):
        pipeline = MagicMock()
        pipeline.get_health.return_value = HealthSnapshot(display=True, browser=True, encoder=False)
        pipeline.get_uptime.return_value = 42
        shutdown = asyncio.Event()

        with caplog.at_level(logging.WARNING, logger="page_streamer"):
            task = asyncio.ensure_future(supervise(pipeline, shutdown, interval=0.01))
            await asyncio.sleep(0.05)
            shutdown.set()
            await task

        warnings = [r.getMessage() for r in caplog.records if "degraded" in r.getMessage()]
        assert len(warnings) == 1
        assert "encoder" in warnings[0]


class TestMain:

    @pytest.fixture(autouse=True)
    def quiet_environment(self, monkeypatch):
        for key in ("PAGE_URL", "AUTH_TOKEN", "INGEST_URL", "INGEST_KEY"):
            monkeypatch.delenv(f"PAGE_STREAMER_{key}", raising=False)
        with patch("page_streamer.app.master.ensure_directories"), \
                patch("page_streamer.app.master.configure_logging"), \
                patch("page_streamer.app.master.install_exception_handlers"):
            yield

    def _argv(self, tmp_path, *extra):
        return ["--config", str(tmp_path / "none.txt"), "--log-file", str(tmp_path / "log.txt"), *extra]

    @pytest.mark.asyncio
    async def test_missing_settings_exit_code(self, tmp_path):
        assert await main(self._argv(tmp_path)) == EXIT_BAD_CONFIG

    @pytest.mark.asyncio
    async def test_start_failure_exit_code(self, tmp_path):
        pipeline = MagicMock()
        pipeline.start = AsyncMock(side_effect=DependencyMissing(["ffmpeg"]))
        pipeline.is_running.return_value = False

        with patch("page_streamer.app.master.StreamPipeline", return_value=pipeline):
            code = await main(self._argv(tmp_path, *REQUIRED))

        assert code == EXIT_START_FAILED
        pipeline.stop.assert_not_called()

    @pytest.mark.asyncio
    async def test_clean_run_stops_pipeline(self, tmp_path):
        pipeline = MagicMock()
        pipeline.start = AsyncMock()
        pipeline.stop = AsyncMock(return_value=12)
        pipeline.is_running.return_value = True

        with patch("page_streamer.app.master.StreamPipeline", return_value=pipeline), \
                patch("page_streamer.app.master.supervise", new=AsyncMock()):
            code = await main(self._argv(tmp_path, *REQUIRED))

        assert code == EXIT_OK
        pipeline.start.assert_awaited_once()
        pipeline.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cleanup_orphans_flag(self, tmp_path):
        with patch("page_streamer.app.master.cleanup_orphaned_processes", return_value=0) as cleanup:
            code = await main(self._argv(tmp_path, "--cleanup-orphans"))

        cleanup.assert_called_once()
        assert code == EXIT_BAD_CONFIG
