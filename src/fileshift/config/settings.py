"""Settings management for fileshift."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import yaml
from dotenv import load_dotenv

from .loader import ConfigPaths, get_config_paths

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PRELOAD_ENGINES = ["media-transcoder"]


@dataclass
class Settings:
    """Application settings loaded from environment and config files."""

    # Paths
    base_dir: Path = field(default_factory=Path.cwd)
    config_paths: Optional[ConfigPaths] = None
    output_dir: Optional[Path] = None  # None means base_dir

    # Media transcoder
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    ffmpeg_timeout: float = 600.0
    gif_fps: int = 15
    gif_width: int = 500

    # PDF rasterisation
    pdf_preview_scale: float = 1.5
    pdf_export_scale: float = 2.0

    # Engines
    preload_engines: list[str] = field(default_factory=lambda: list(DEFAULT_PRELOAD_ENGINES))
    engine_retries: int = 1

    # Runtime
    verbose: bool = False

    @property
    def resolved_output_dir(self) -> Path:
        """Directory converted files are delivered to."""
        if self.output_dir is None:
            return self.base_dir
        if self.output_dir.is_absolute():
            return self.output_dir
        return self.base_dir / self.output_dir


def load_settings_files(paths: ConfigPaths) -> dict[str, Any]:
    """
    Merge settings.yaml from every config location.

    Priority (later takes precedence):
    1. Package defaults
    2. User config
    3. Local config
    """
    merged: dict[str, Any] = {}
    for settings_file in paths.settings_files():
        try:
            with open(settings_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring unreadable settings file {settings_file}: {e}")
            continue
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {settings_file}: expected a mapping")
            continue
        merged.update(data)
    return merged


def load_settings() -> Settings:
    """
    Load settings from all configuration sources.

    Priority (highest to lowest):
    1. Environment variables (including from .env files)
    2. Local .fileshift/ directory
    3. User ~/.config/fileshift/ directory
    4. Package defaults
    """
    paths = get_config_paths()

    if paths.env_file:
        load_dotenv(paths.env_file, override=True)

    file_values = load_settings_files(paths)
    defaults = Settings()

    def pick(key: str, env_var: str, parse: Callable[[Any], T], default: T) -> T:
        raw = os.getenv(env_var)
        source = env_var
        if raw is None or not str(raw).strip():
            if key not in file_values or file_values[key] is None:
                return default
            raw = file_values[key]
            source = key
        try:
            return parse(raw)
        except (TypeError, ValueError):
            logger.warning(f"Invalid value for {source}: {raw!r}; using {default!r}")
            return default

    output_dir = pick("output_dir", "FILESHIFT_OUTPUT_DIR", _parse_path, None)

    return Settings(
        base_dir=Path.cwd(),  # Always use current directory as base
        config_paths=paths,
        output_dir=output_dir,
        ffmpeg_binary=pick("ffmpeg_binary", "FILESHIFT_FFMPEG", _parse_text, defaults.ffmpeg_binary),
        ffprobe_binary=pick(
            "ffprobe_binary", "FILESHIFT_FFPROBE", _parse_text, defaults.ffprobe_binary
        ),
        ffmpeg_timeout=pick(
            "ffmpeg_timeout", "FILESHIFT_FFMPEG_TIMEOUT", _positive(float), defaults.ffmpeg_timeout
        ),
        gif_fps=pick("gif_fps", "FILESHIFT_GIF_FPS", _positive(int), defaults.gif_fps),
        gif_width=pick("gif_width", "FILESHIFT_GIF_WIDTH", _positive(int), defaults.gif_width),
        pdf_preview_scale=pick(
            "pdf_preview_scale",
            "FILESHIFT_PDF_PREVIEW_SCALE",
            _positive(float),
            defaults.pdf_preview_scale,
        ),
        pdf_export_scale=pick(
            "pdf_export_scale",
            "FILESHIFT_PDF_EXPORT_SCALE",
            _positive(float),
            defaults.pdf_export_scale,
        ),
        preload_engines=pick(
            "preload_engines", "FILESHIFT_PRELOAD_ENGINES", _parse_names, defaults.preload_engines
        ),
        engine_retries=pick(
            "engine_retries", "FILESHIFT_ENGINE_RETRIES", _non_negative_int, defaults.engine_retries
        ),
    )


def _parse_text(value: Any) -> str:
    text = str(value).strip()
    if not text:
        raise ValueError("empty value")
    return text


def _parse_path(value: Any) -> Path:
    return Path(_parse_text(value)).expanduser()


def _parse_names(value: Any) -> list[str]:
    """Accept a comma-separated string or a YAML list."""
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ValueError(f"expected a list, got {type(value).__name__}")
    return [item.strip() for item in items if item.strip()]


def _positive(kind: Callable[[Any], T]) -> Callable[[Any], T]:
    def parse(value: Any) -> T:
        if isinstance(value, bool):
            raise ValueError("expected a number")
        number = kind(str(value).strip()) if isinstance(value, str) else kind(value)
        if not number > 0:
            raise ValueError("must be positive")
        return number

    return parse


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected an integer")
    number = int(str(value).strip()) if isinstance(value, str) else int(value)
    if number < 0:
        raise ValueError("must not be negative")
    return number


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset global settings (useful for testing or directory change)."""
    global _settings
    _settings = None
