"""Images decoded by a dedicated engine: SVG, HEIC/HEIF and PSD."""

import asyncio
from abc import abstractmethod
from io import BytesIO
from typing import Any

from PIL import Image

from fileshift.errors import ConversionError, PreviewError
from fileshift.files import SourceFile
from fileshift.routing import CapabilityKind
from fileshift.status import ProgressCallback

from .base import BaseHandler, ConversionResult, Representation
from .raster import encode_image, open_image, preview_png


class _DecodedImageHandler(BaseHandler):
    """Decode with the capability's engine, then encode with Pillow."""

    @abstractmethod
    def decode(self, module: Any, data: bytes) -> Image.Image:
        """Decode *data* with the engine module; runs in a worker thread."""

    async def _decode(self, file: SourceFile) -> Image.Image:
        module = await self.engine()
        try:
            return await asyncio.to_thread(self.decode, module, file.data)
        except ConversionError:
            raise
        except Exception as e:
            raise ConversionError(f"Could not decode {file.name}: {e}") from e

    async def preview(self, file: SourceFile) -> Representation:
        try:
            image = await self._decode(file)
        except ConversionError as e:
            raise PreviewError(str(e)) from e
        data = await asyncio.to_thread(preview_png, image)
        return Representation.image(data, "image/png", caption=file.name)

    async def _convert(
        self, file: SourceFile, output_format: str, progress: ProgressCallback
    ) -> ConversionResult:
        image = await self._decode(file)
        progress(0.5)
        data = await asyncio.to_thread(encode_image, image, output_format)
        progress(1.0)
        return self.result(data, file.with_extension(output_format), output_format)


class SvgHandler(_DecodedImageHandler):
    """Rasterise SVG at its intrinsic size."""

    kinds = (CapabilityKind.VECTOR_IMAGE,)

    async def preview(self, file: SourceFile) -> Representation:
        return Representation.image(file.data, "image/svg+xml", caption=file.name)

    def decode(self, module: Any, data: bytes) -> Image.Image:
        png = module.svg2png(bytestring=data)
        return open_image(png)


class HeifHandler(_DecodedImageHandler):
    """HEIC/HEIF through pillow-heif's Pillow plugin."""

    kinds = (CapabilityKind.HEIF_IMAGE,)

    def decode(self, module: Any, data: bytes) -> Image.Image:
        # The engine registered the HEIF opener, so Pillow reads it directly
        return open_image(data)


class PsdHandler(_DecodedImageHandler):
    """Photoshop documents flattened to their composite."""

    kinds = (CapabilityKind.PSD_IMAGE,)

    def decode(self, module: Any, data: bytes) -> Image.Image:
        psd = module.PSDImage.open(BytesIO(data))
        image = psd.composite()
        if image is None:
            raise ConversionError("The PSD has no renderable layers")
        return image
