"""Simple YAML configuration loader for Stasis."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..exceptions import ConfigError
from ..models.frame import MAX_FRAME_SIZE

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 5000,
    },
    "storage": {
        "videos_root": "~/Videos",
    },
    "encoding": {
        "fps": 30,
        "encoder_path": "ffmpeg",
    },
    "protocol": {
        "max_frame_size": MAX_FRAME_SIZE,
    },
    "pairing": {
        "signaling_url": None,
        "code": None,
    },
    "logging": {
        "level": "INFO",
        "file_path": None,
        "console_output": True,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class StasisConfig:
    """Stasis configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used.
        """
        self.config_file: Optional[Path] = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            return

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration: {e}") from e

        if not loaded:
            raise ConfigError("Configuration file is empty")
        if not isinstance(loaded, dict):
            raise ConfigError("Configuration file must contain a mapping")

        config = _merge(DEFAULT_CONFIG, loaded)

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        videos_root = config['storage'].get('videos_root')
        if videos_root:
            videos_root = os.path.expanduser(videos_root)
            if not os.path.isabs(videos_root):
                videos_root = str(config_dir / videos_root)
            config['storage']['videos_root'] = videos_root

        log_path = config['logging'].get('file_path')
        if log_path and not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'server.port').

        Args:
            key_path: Dot-separated key path (e.g., 'encoding.encoder_path')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'server.port')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            config_dict = config_dict.setdefault(key, {})

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_videos_root(self) -> Path:
        """Get the videos root directory, with ``~`` expanded."""
        videos_root = self.get('storage.videos_root') or DEFAULT_CONFIG['storage']['videos_root']
        return Path(os.path.expanduser(str(videos_root))).absolute()

    def get_fps(self) -> int:
        """Get the encoding frame rate - CRASHES if not a positive integer."""
        fps = self.get('encoding.fps', 30)
        try:
            fps = int(fps)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"encoding.fps must be an integer, got {fps!r}") from e
        if fps <= 0:
            raise ConfigError(f"encoding.fps must be positive, got {fps}")
        return fps

    def get_port(self) -> int:
        """Get the listening port - CRASHES if out of range."""
        port = self.get('server.port', 5000)
        try:
            port = int(port)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"server.port must be an integer, got {port!r}") from e
        if not 0 <= port <= 65535:
            raise ConfigError(f"server.port out of range: {port}")
        return port

    def get_max_frame_size(self) -> int:
        """Get the largest accepted frame payload - CRASHES if outside 1..MAX_FRAME_SIZE."""
        size = self.get('protocol.max_frame_size', MAX_FRAME_SIZE)
        try:
            size = int(size)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"protocol.max_frame_size must be an integer, got {size!r}") from e
        if not 0 < size <= MAX_FRAME_SIZE:
            raise ConfigError(f"protocol.max_frame_size must be in 1..{MAX_FRAME_SIZE}, got {size}")
        return size

    def get_log_file_path(self) -> Path:
        """Get log file path, defaulting to a logs directory under the Stasis root."""
        log_path = self.get('logging.file_path')
        if log_path:
            return Path(os.path.expanduser(str(log_path)))
        return self.get_videos_root() / "Stasis" / "logs" / "stasis.log"
