"""On-demand engines used by the converters."""

from .builtin import create_engine_registry, default_engine_specs
from .ffmpeg import FfmpegEngine
from .registry import EngineRegistry, EngineSpec, EngineState

__all__ = [
    "EngineRegistry",
    "EngineSpec",
    "EngineState",
    "FfmpegEngine",
    "create_engine_registry",
    "default_engine_specs",
]
