import asyncio
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple

import aiofiles

from page_streamer.core.logging_utils import get_module_logger
from .pipeline_types import PipelineTimings


logger = get_module_logger("ConfigManager")

# config file key -> PipelineConfig field
PIPELINE_KEYS = (
    "page_url",
    "auth_token",
    "ingest_url",
    "ingest_key",
    "resolution",
    "bitrate",
)

# config file key -> PipelineTimings field (seconds)
TIMING_KEYS = (
    "display_grace",
    "browser_timeout",
    "browser_settle",
    "encoder_stabilize",
    "stop_grace",
)


class ConfigManager:
    """Reader for ``key = value`` config files.

    Blank lines and ``#`` comments are ignored, trailing ``#`` comments are
    stripped and matching single or double quotes around a value are removed.
    A missing file reads as an empty config.
    """

    def __init__(self):
        self.logger = get_module_logger("ConfigManager")

    def _parse_config_lines(self, lines: Iterable[str]) -> Dict[str, str]:
        config: Dict[str, str] = {}

        for raw_line in lines:
            line = raw_line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()

            if ' #' in value:
                value = value.split(' #')[0].strip()

            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]

            config[key] = value

        return config

    def read_config(self, config_path: Path) -> Dict[str, str]:
        """Synchronous read for callers outside the event loop."""
        if not config_path.exists():
            return {}

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return self._parse_config_lines(f)
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}

    async def read_config_async(self, config_path: Path) -> Dict[str, str]:
        if not await asyncio.to_thread(config_path.exists):
            logger.debug("No config file at %s", config_path)
            return {}

        try:
            lines: list[str] = []
            async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
                async for line in f:
                    lines.append(line)
            return self._parse_config_lines(lines)
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}

    def get_bool(self, config: Dict[str, str], key: str, default: bool = False) -> bool:
        if key not in config:
            return default

        value = config[key].lower()
        return value in ('true', '1', 'yes', 'on')

    def get_int(self, config: Dict[str, str], key: str, default: int = 0) -> int:
        if key not in config:
            return default

        try:
            return int(config[key])
        except ValueError:
            logger.warning("Invalid int value for %s: %s, using default %d", key, config[key], default)
            return default

    def get_float(self, config: Dict[str, str], key: str, default: float = 0.0) -> float:
        if key not in config:
            return default

        try:
            return float(config[key])
        except ValueError:
            logger.warning("Invalid float value for %s: %s, using default %f", key, config[key], default)
            return default

    def get_str(self, config: Dict[str, str], key: str, default: str = "") -> str:
        return config.get(key, default)

    def pipeline_settings(self, config: Dict[str, str]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Split a raw config into PipelineConfig and PipelineTimings keyword dicts.

        Only keys present in the file are returned, so the dataclass defaults
        (and any CLI overrides applied later) still win for everything else.
        """
        pipeline: Dict[str, Any] = {key: config[key] for key in PIPELINE_KEYS if key in config}
        if "framerate" in config:
            pipeline["framerate"] = self.get_int(config, "framerate")

        timing_defaults = PipelineTimings()
        timings: Dict[str, Any] = {
            key: self.get_float(config, key, getattr(timing_defaults, key))
            for key in TIMING_KEYS
            if key in config
        }
        if "require_browser_ready" in config:
            timings["require_browser_ready"] = self.get_bool(config, "require_browser_ready")

        return pipeline, timings

    async def load_pipeline_settings(self, config_path: Path) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        config = await self.read_config_async(config_path)
        if config:
            self.logger.info("Loaded %d setting(s) from %s", len(config), config_path)
        return self.pipeline_settings(config)


_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    return _config_manager
