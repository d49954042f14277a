"""Cleanup of pipeline processes orphaned by a previous run.

If the orchestrator dies without running its shutdown (SIGKILL, OOM
killer), Xvfb, the browser and ffmpeg keep running,
reparented to init. They hold a display slot and keep pushing to the ingest
endpoint. This finds them by their command-line signature and stops them.
"""

import os
from typing import Iterable, List, Sequence

import psutil

from page_streamer.core.logging_utils import get_module_logger

logger = get_module_logger("OrphanCleanup")


def _is_display_cmd(cmdline: Sequence[str]) -> bool:
    return (
        len(cmdline) >= 5
        and os.path.basename(cmdline[0]) == "Xvfb"
        and cmdline[1].startswith(":")
        and cmdline[2:4] == ["-screen", "0"]
    )


def _is_browser_cmd(cmdline: Sequence[str]) -> bool:
    return "--autoplay-policy=no-user-gesture-required" in cmdline and "--headless=new" in cmdline


def _is_encoder_cmd(cmdline: Sequence[str]) -> bool:
    if not cmdline or os.path.basename(cmdline[0]) != "ffmpeg":
        return False
    return "x11grab" in cmdline and "flv" in cmdline


def is_pipeline_command(cmdline: Sequence[str]) -> bool:
    """Return True if ``cmdline`` looks like one of our three processes."""
    cmdline = list(cmdline)
    return _is_display_cmd(cmdline) or _is_browser_cmd(cmdline) or _is_encoder_cmd(cmdline)


def find_orphaned_pipeline_processes() -> List[psutil.Process]:
    """Find pipeline processes whose parent is gone or is init.

    Browser helper processes (renderers, zygotes) are children of the main
    browser process, so only the top-level browser is matched here; killing
    it takes the helpers down with it.
    """
    orphaned = []
    current_pid = os.getpid()

    for proc in psutil.process_iter(["pid", "cmdline"]):
        try:
            if proc.pid == current_pid:
                continue

            cmdline = proc.info.get("cmdline") or []
            if not is_pipeline_command(cmdline):
                continue

            try:
                parent = proc.parent()
            except psutil.NoSuchProcess:
                parent = None

            if parent is None or parent.pid == 1:
                orphaned.append(proc)
                logger.debug("Found orphaned process: pid=%d, cmd=%s", proc.pid, " ".join(cmdline)[:80])

        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue

    return orphaned


def terminate_processes(procs: Iterable[psutil.Process], timeout: float = 5.0) -> int:
    """SIGTERM ``procs``, wait up to ``timeout``, SIGKILL survivors.

    Returns the number of processes signalled.
    """
    signalled = []
    for proc in procs:
        try:
            logger.warning("Terminating orphaned process: pid=%d", proc.pid)
            proc.terminate()
            signalled.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    if not signalled:
        return 0

    gone, alive = psutil.wait_procs(signalled, timeout=timeout)
    if gone:
        logger.debug("Gracefully terminated %d process(es)", len(gone))

    for proc in alive:
        try:
            logger.warning("Force killing unresponsive process: pid=%d", proc.pid)
            proc.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass
    if alive:
        psutil.wait_procs(alive, timeout=1.0)

    return len(signalled)


def cleanup_orphaned_processes(timeout: float = 5.0) -> int:
    """Stop every orphaned pipeline process. Returns how many were signalled."""
    orphaned = find_orphaned_pipeline_processes()
    if not orphaned:
        return 0

    logger.info("Found %d orphaned pipeline process(es)", len(orphaned))
    return terminate_processes(orphaned, timeout=timeout)


__all__ = [
    "is_pipeline_command",
    "find_orphaned_pipeline_processes",
    "terminate_processes",
    "cleanup_orphaned_processes",
]
