"""Output delivery: where converted bytes end up."""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from fileshift.routing.capabilities import COMPOUND_FORMATS

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r'[\x00-\x1f\x7f<>:"/\\|?*]')
DEFAULT_FILENAME = "converted"


def safe_filename(filename: str) -> str:
    """Reduce a suggested name to a single safe path component."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_CHARS_RE.sub("_", name).strip().strip(".")
    return name or DEFAULT_FILENAME


def split_suffix(filename: str) -> tuple[str, str]:
    """Split into stem and suffix, keeping compound suffixes like .tar.gz."""
    lowered = filename.lower()
    for compound in COMPOUND_FORMATS:
        suffix = f".{compound}"
        if lowered.endswith(suffix) and len(filename) > len(suffix):
            return filename[: -len(suffix)], filename[-len(suffix) :]
    path = Path(filename)
    if path.suffix and path.stem:
        return path.stem, path.suffix
    return filename, ""


class Delivery(ABC):
    """Receives the output of a successful conversion."""

    @abstractmethod
    def deliver(self, data: bytes, filename: str, mime_type: str) -> Optional[str]:
        """
        Hand off converted bytes.

        Args:
            data: Output bytes.
            filename: Suggested filename.
            mime_type: Output MIME type.

        Returns:
            Where the output went (a path, a URL), if meaningful.
        """


class DirectoryDelivery(Delivery):
    """Write outputs into a directory without clobbering existing files."""

    def __init__(self, output_dir: Union[str, Path], overwrite: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.overwrite = overwrite

    def target_path(self, filename: str) -> Path:
        name = safe_filename(filename)
        candidate = self.output_dir / name
        if self.overwrite or not candidate.exists():
            return candidate

        stem, suffix = split_suffix(name)
        counter = 1
        while candidate.exists():
            candidate = self.output_dir / f"{stem} ({counter}){suffix}"
            counter += 1
        return candidate

    def deliver(self, data: bytes, filename: str, mime_type: str) -> Optional[str]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.target_path(filename)
        path.write_bytes(data)
        logger.info(f"Wrote {len(data)} bytes ({mime_type}) to {path}")
        return str(path)


@dataclass(frozen=True)
class DeliveredOutput:
    data: bytes
    filename: str
    mime_type: str


class InMemoryDelivery(Delivery):
    """Keep outputs in memory, in delivery order."""

    def __init__(self) -> None:
        self.outputs: list[DeliveredOutput] = []

    def deliver(self, data: bytes, filename: str, mime_type: str) -> Optional[str]:
        self.outputs.append(DeliveredOutput(data, filename, mime_type))
        return None

    @property
    def last(self) -> Optional[DeliveredOutput]:
        return self.outputs[-1] if self.outputs else None
