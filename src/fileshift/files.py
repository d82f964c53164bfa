"""In-memory file handle passed through the conversion pipeline."""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union


@dataclass(frozen=True)
class SourceFile:
    """A selected file: its name, declared media type and bytes.

    The declared media type is whatever the caller reported, which may be
    empty or generic; routing treats it as a hint, not as the truth.
    """

    name: str
    data: bytes = field(repr=False)
    media_type: str = ""

    @classmethod
    def from_path(
        cls, path: Union[str, Path], media_type: Optional[str] = None
    ) -> "SourceFile":
        """Read a file from disk.

        Args:
            path: File to read.
            media_type: Declared media type. When omitted it is guessed from
                the filename, which may yield an empty string.

        Returns:
            SourceFile holding the full contents.
        """
        path = Path(path)
        if media_type is None:
            guessed, _encoding = mimetypes.guess_type(path.name)
            media_type = guessed or ""
        return cls(name=path.name, data=path.read_bytes(), media_type=media_type)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        """Last dotted suffix, lowercase and without the dot ("" if none)."""
        return extension_of(self.name)

    @property
    def stem(self) -> str:
        """Name without its last extension."""
        if not self.extension:
            return self.name
        return self.name[: -(len(self.extension) + 1)]

    def with_extension(self, output_format: str) -> str:
        """Name for an output that replaces the last extension."""
        return f"{self.stem}.{output_format}"

    def appended(self, output_format: str) -> str:
        """Name for an output that keeps the full original name."""
        return f"{self.name}.{output_format}"


def extension_of(filename: str) -> str:
    """Return the lowercase last extension of *filename*, or ""."""
    suffix = Path(filename or "").suffix
    return suffix[1:].lower() if len(suffix) > 1 else ""
