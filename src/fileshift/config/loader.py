"""Configuration file discovery and initialization."""

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console

# Package defaults directory
PACKAGE_DIR = Path(__file__).parent.parent
DEFAULTS_DIR = PACKAGE_DIR / "defaults"

LOCAL_DIR_NAME = ".fileshift"
SETTINGS_FILE = "settings.yaml"

console = Console()


@dataclass
class ConfigPaths:
    """Discovered configuration paths."""

    # Directories
    local_dir: Optional[Path] = None  # .fileshift/ in current directory
    user_dir: Optional[Path] = None  # ~/.config/fileshift/
    package_dir: Path = DEFAULTS_DIR  # Package defaults

    # Specific files (resolved from directories)
    env_file: Optional[Path] = None
    settings_file: Optional[Path] = None

    def __post_init__(self):
        """Resolve file paths from directories."""
        # Priority: local > user > package
        self.env_file = self._find_file(".env")
        self.settings_file = self._find_file(SETTINGS_FILE)

    def _find_file(self, filename: str) -> Optional[Path]:
        """Find a config file in priority order."""
        for directory in (self.local_dir, self.user_dir, self.package_dir):
            if directory:
                candidate = directory / filename
                if candidate.exists():
                    return candidate
        return None

    def settings_files(self) -> list[Path]:
        """Every existing settings.yaml, lowest priority first."""
        files = []
        for directory in (self.package_dir, self.user_dir, self.local_dir):
            if directory:
                candidate = directory / SETTINGS_FILE
                if candidate.exists():
                    files.append(candidate)
        return files


def user_config_dir() -> Path:
    return Path.home() / ".config" / "fileshift"


def get_config_paths() -> ConfigPaths:
    """
    Discover configuration paths.

    Priority order (highest to lowest):
    1. .fileshift/ in current directory
    2. ~/.config/fileshift/
    3. Package defaults

    Returns:
        ConfigPaths with discovered locations
    """
    local_dir = Path.cwd() / LOCAL_DIR_NAME
    local_dir = local_dir if local_dir.exists() else None

    user_dir = user_config_dir()
    user_dir = user_dir if user_dir.exists() else None

    return ConfigPaths(
        local_dir=local_dir,
        user_dir=user_dir,
        package_dir=DEFAULTS_DIR,
    )


ENV_TEMPLATE = """\
# fileshift local configuration
# Uncomment and set values to override ~/.config/fileshift or the defaults.

# Where converted files are written (default: current directory)
# FILESHIFT_OUTPUT_DIR=converted

# ffmpeg / ffprobe executables (names on PATH or absolute paths)
# FILESHIFT_FFMPEG=ffmpeg
# FILESHIFT_FFPROBE=ffprobe
# FILESHIFT_FFMPEG_TIMEOUT=600

# Engines loaded at startup (comma-separated)
# FILESHIFT_PRELOAD_ENGINES=media-transcoder

# Automatic reload attempts when an engine fails during a conversion
# FILESHIFT_ENGINE_RETRIES=1
"""

SETTINGS_TEMPLATE = """\
# fileshift settings for this directory
# Values here override ~/.config/fileshift/settings.yaml and the package
# defaults. Environment variables override everything.

# output_dir: converted

# Animated GIF output from video
# gif_fps: 15
# gif_width: 500

# PDF rasterisation scale (1.0 = 72 dpi)
# pdf_preview_scale: 1.5
# pdf_export_scale: 2.0

# preload_engines:
#   - media-transcoder
"""


def init_local_config(target_dir: Optional[Path] = None) -> bool:
    """
    Initialize local configuration in the specified or current directory.

    Creates .fileshift/ directory with template configuration files.

    Args:
        target_dir: Directory to initialize (default: current directory)

    Returns:
        True if successful
    """
    if target_dir is None:
        target_dir = Path.cwd()

    config_dir = target_dir / LOCAL_DIR_NAME

    if config_dir.exists():
        console.print(f"Configuration already exists at {config_dir}")
        console.print("Delete it first if you want to reinitialize.")
        return False

    console.print(f"Initializing fileshift configuration in {config_dir}")

    try:
        config_dir.mkdir(parents=True)
        (config_dir / ".env").write_text(ENV_TEMPLATE, encoding="utf-8")
        (config_dir / SETTINGS_FILE).write_text(SETTINGS_TEMPLATE, encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Error creating configuration: {e}[/red]")
        if config_dir.exists():
            shutil.rmtree(config_dir)
        return False

    console.print("\nCreated configuration files:")
    console.print(f"  {config_dir}/.env           - engine binaries and output")
    console.print(f"  {config_dir}/{SETTINGS_FILE}  - conversion settings")
    return True
