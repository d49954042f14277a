import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

from page_streamer.cli.common import (
    add_logging_arguments,
    bitrate_arg,
    install_exception_handlers,
    install_signal_handlers,
    log_banner,
    positive_float,
    positive_int,
    remove_signal_handlers,
    resolution_arg,
)
from page_streamer.core import (
    PipelineConfig,
    PipelineError,
    PipelineTimings,
    StreamPipeline,
)
from page_streamer.core.config_manager import get_config_manager
from page_streamer.core.logging_config import configure_logging
from page_streamer.core.logging_utils import forget_secret, get_module_logger, register_secret
from page_streamer.core.orphan_cleanup import cleanup_orphaned_processes
from page_streamer.core.paths import CONFIG_PATH, MASTER_LOG_FILE, ensure_directories


logger = get_module_logger("Master")

ENV_PREFIX = "PAGE_STREAMER_"
ENV_KEYS = ("page_url", "auth_token", "ingest_url", "ingest_key")
REQUIRED_KEYS = ("page_url", "ingest_url", "ingest_key")

EXIT_OK = 0
EXIT_START_FAILED = 1
EXIT_BAD_CONFIG = 2

DEFAULT_HEALTH_INTERVAL = 10.0


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Render a web page on a virtual display and stream it to an RTMP endpoint"
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help=f"key = value settings file (default: {CONFIG_PATH})",
    )

    target = parser.add_argument_group("stream target")
    target.add_argument("--page-url", default=None, help="Page to render and capture")
    target.add_argument("--auth-token", default=None, help="Opaque token forwarded to the page")
    target.add_argument("--ingest-url", default=None, help="RTMP ingest URL, e.g. rtmp://host/live")
    target.add_argument("--ingest-key", default=None, help="RTMP stream key")
    target.add_argument(
        "--overlay",
        action="store_true",
        default=False,
        help="Capture <page-url>/stream-overlay with the auth token as apiKey instead of the page itself",
    )

    video = parser.add_argument_group("video")
    video.add_argument("--resolution", type=resolution_arg, default=None, help="Capture size (default: 1280x720)")
    video.add_argument("--bitrate", type=bitrate_arg, default=None, help="Video bitrate (default: 2500k)")
    video.add_argument("--framerate", type=positive_int, default=None, help="Frames per second (default: 30)")

    timing = parser.add_argument_group("timing")
    timing.add_argument("--browser-timeout", type=positive_float, default=None,
                        help="Seconds to wait for the browser readiness marker (default: 15)")
    timing.add_argument("--stop-grace", type=positive_float, default=None,
                        help="Seconds each process gets after SIGTERM before SIGKILL (default: 2)")
    timing.add_argument("--require-browser-ready", action="store_true", default=None,
                        help="Fail instead of assuming readiness when the browser never signals it")
    timing.add_argument("--health-interval", type=positive_float, default=DEFAULT_HEALTH_INTERVAL,
                        help="Seconds between health log lines while streaming")

    parser.add_argument(
        "--cleanup-orphans",
        action="store_true",
        default=False,
        help="Stop Xvfb/browser/ffmpeg processes left behind by a previous run before starting",
    )

    add_logging_arguments(parser, default_log_file=MASTER_LOG_FILE)

    return parser.parse_args(argv)


def build_overlay_url(page_url: str, auth_token: str) -> str:
    """URL of the stream overlay view for ``page_url``, authenticated by query string."""
    base = page_url.rstrip("/")
    return f"{base}/stream-overlay?apiKey={quote(auth_token, safe='')}&embedded=true"


def resolve_settings(
    args: argparse.Namespace,
    file_pipeline: Mapping[str, Any],
    file_timings: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[PipelineConfig, PipelineTimings]:
    """Merge settings: CLI flag > environment > config file > defaults.

    Raises ValueError when a required value is missing or malformed.
    """
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = dict(file_pipeline)

    for key in ENV_KEYS:
        env_value = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if env_value:
            values[key] = env_value

    for key in ENV_KEYS + ("resolution", "bitrate", "framerate"):
        cli_value = getattr(args, key, None)
        if cli_value is not None:
            values[key] = cli_value

    missing = [key for key in REQUIRED_KEYS if not values.get(key)]
    if missing:
        flags = ", ".join(f"--{key.replace('_', '-')}" for key in missing)
        raise ValueError(f"Missing required settings: {flags}")

    if args.overlay:
        values["page_url"] = build_overlay_url(values["page_url"], values.get("auth_token", ""))

    timing_values: Dict[str, Any] = dict(file_timings)
    if args.browser_timeout is not None:
        timing_values["browser_timeout"] = args.browser_timeout
    if args.stop_grace is not None:
        timing_values["stop_grace"] = args.stop_grace
    if args.require_browser_ready is not None:
        timing_values["require_browser_ready"] = args.require_browser_ready

    return PipelineConfig(**values), PipelineTimings(**timing_values)


async def supervise(
    pipeline: StreamPipeline,
    shutdown_event: asyncio.Event,
    interval: float = DEFAULT_HEALTH_INTERVAL,
) -> None:
    """Log pipeline health until ``shutdown_event`` is set.

    Degraded health is reported but not acted on; restarting is the
    operator's call.
    """
    last_health = None
    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
            break
        except asyncio.TimeoutError:
            pass

        health = pipeline.get_health()
        if health.all_alive:
            logger.debug("Healthy (uptime %ds)", pipeline.get_uptime())
        elif health != last_health:
            down = [role for role, alive in health.as_dict().items() if not alive]
            logger.warning(
                "Pipeline degraded after %ds: %s not running; stop and restart to recover",
                pipeline.get_uptime(), ", ".join(down),
            )
        last_health = health


async def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    ensure_directories()
    configure_logging(
        args.log_level,
        force=True,
        console=args.console_output,
        log_file=args.log_file,
    )

    loop = asyncio.get_running_loop()
    install_exception_handlers(logger, loop)

    if args.cleanup_orphans:
        stopped = await asyncio.to_thread(cleanup_orphaned_processes)
        if stopped:
            logger.info("Stopped %d orphaned process(es) from a previous run", stopped)

    file_pipeline, file_timings = await get_config_manager().load_pipeline_settings(args.config)
    try:
        config, timings = resolve_settings(args, file_pipeline, file_timings)
    except ValueError as exc:
        logger.error("%s", exc)
        return EXIT_BAD_CONFIG

    # Held for the whole run, including the log lines after the pipeline stops.
    register_secret(config.auth_token, config.ingest_key)

    log_banner(
        logger,
        "Page Streamer Starting",
        page=config.page_url,
        ingest=config.ingest_url,
        video=f"{config.resolution} @ {config.framerate}fps, {config.bitrate}",
        log_file=args.log_file,
    )

    pipeline = StreamPipeline(timings=timings)
    shutdown_event = asyncio.Event()
    install_signal_handlers(shutdown_event, loop)

    try:
        try:
            await pipeline.start(config)
        except PipelineError as exc:
            logger.error("Could not start pipeline: %s", exc)
            return EXIT_START_FAILED

        await supervise(pipeline, shutdown_event, args.health_interval)
    finally:
        if pipeline.is_running():
            uptime = await pipeline.stop()
            log_banner(logger, "Page Streamer Stopped", uptime=f"{uptime}s")
        remove_signal_handlers(loop)
        forget_secret(config.auth_token, config.ingest_key)

    return EXIT_OK


def run(argv: Optional[list[str]] = None) -> int:
    try:
        return asyncio.run(main(argv))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130


if __name__ == "__main__":
    raise SystemExit(run(sys.argv[1:]))
