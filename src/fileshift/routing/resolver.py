"""Map a file's declared media type and name to a capability."""

import logging
from typing import Mapping, Optional

from fileshift.files import SourceFile, extension_of

from .capabilities import CAPABILITIES, Capability

logger = logging.getLogger(__name__)

FONT_EXTENSIONS = frozenset({"ttf", "otf", "woff", "woff2"})
TARBALL_SUFFIXES = (".tar.gz", ".tgz")

VIDEO_KEY = "video"
TARBALL_KEY = "application/gzip"
FONT_KEY = "font"


class TypeResolver:
    """Resolve capabilities with a fixed precedence.

    1. Exact media type (``application/pdf``).
    2. Generic prefix of the media type (``image`` from ``image/png``).
    3. Extension overrides for types browsers report badly or not at all
       (``.mkv``, ``.tar.gz``, font files).

    Anything else resolves to ``None``.
    """

    def __init__(self, capabilities: Optional[Mapping[str, Capability]] = None):
        self._capabilities = dict(CAPABILITIES if capabilities is None else capabilities)

    @property
    def capabilities(self) -> dict[str, Capability]:
        return self._capabilities

    def resolve(self, media_type: Optional[str], filename: Optional[str]) -> Optional[Capability]:
        """Return the capability for a declared type and filename, or None."""
        declared = _normalize_media_type(media_type)
        if declared:
            capability = self._capabilities.get(declared)
            if capability is not None:
                return capability

            generic = declared.split("/", 1)[0]
            if generic and generic != declared:
                capability = self._capabilities.get(generic)
                if capability is not None:
                    return capability

        capability = self._resolve_by_name(filename or "")
        if capability is None:
            logger.debug(f"No capability for {filename!r} (declared {media_type!r})")
        return capability

    def resolve_file(self, file: SourceFile) -> Optional[Capability]:
        return self.resolve(file.media_type, file.name)

    def _resolve_by_name(self, filename: str) -> Optional[Capability]:
        name = filename.strip().lower()
        extension = extension_of(name)
        if not extension:
            return None

        if extension == "mkv":
            return self._capabilities.get(VIDEO_KEY)
        if name.endswith(TARBALL_SUFFIXES):
            return self._capabilities.get(TARBALL_KEY)
        if extension in FONT_EXTENSIONS:
            return self._capabilities.get(FONT_KEY)
        return None


def _normalize_media_type(media_type: Optional[str]) -> str:
    """Lowercase a media type and drop parameters (``; charset=...``)."""
    if not media_type:
        return ""
    return media_type.split(";", 1)[0].strip().lower()


_default_resolver: Optional[TypeResolver] = None


def get_resolver() -> TypeResolver:
    """Get or create the resolver over the built-in catalog."""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = TypeResolver()
    return _default_resolver
