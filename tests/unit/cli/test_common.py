"""Unit tests for shared CLI helpers."""

import argparse
import asyncio
import logging
import signal

import pytest

from page_streamer.cli.common import (
    add_logging_arguments,
    bitrate_arg,
    install_signal_handlers,
    log_banner,
    positive_float,
    positive_int,
    remove_signal_handlers,
    resolution_arg,
)


class TestArgumentTypes:

    def test_positive_int(self):
        assert positive_int("30") == 30
        with pytest.raises(argparse.ArgumentTypeError):
            positive_int("0")
        with pytest.raises(argparse.ArgumentTypeError):
            positive_int("thirty")

    def test_positive_float(self):
        assert positive_float("2.5") == 2.5
        with pytest.raises(argparse.ArgumentTypeError):
            positive_float("-1")

    def test_resolution_arg(self):
        assert resolution_arg("0640x0480") == "640x480"
        with pytest.raises(argparse.ArgumentTypeError):
            resolution_arg("640by480")

    def test_bitrate_arg(self):
        assert bitrate_arg("2500K") == "2500k"
        with pytest.raises(argparse.ArgumentTypeError):
            bitrate_arg("2.5M")


class TestLoggingArguments:

    def test_defaults(self, tmp_path):
        parser = argparse.ArgumentParser()
        add_logging_arguments(parser, default_log_file=tmp_path / "x.log")
        args = parser.parse_args([])

        assert args.log_level == "info"
        assert args.log_file == tmp_path / "x.log"
        assert args.console_output is True

    def test_no_console(self):
        parser = argparse.ArgumentParser()
        add_logging_arguments(parser)
        assert parser.parse_args(["--no-console"]).console_output is False


class TestSignals:

    @pytest.mark.asyncio
    async def test_sigterm_sets_shutdown_event(self):
        loop = asyncio.get_running_loop()
        shutdown = asyncio.Event()
        install_signal_handlers(shutdown, loop)
        try:
            signal.raise_signal(signal.SIGTERM)
            await asyncio.wait_for(shutdown.wait(), timeout=1.0)
        finally:
            remove_signal_handlers(loop)

        assert shutdown.is_set()


def test_log_banner(caplog):
    with caplog.at_level(logging.INFO, logger="page_streamer"):
        log_banner(logging.getLogger("page_streamer.test"), "Page Streamer Starting", log_file="/tmp/x.log")

    messages = [r.getMessage() for r in caplog.records]
    assert "[test] Page Streamer Starting" in messages
    assert "[test] Log File: /tmp/x.log" in messages
