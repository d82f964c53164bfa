"""Pillow helpers shared by the image-producing handlers."""

from io import BytesIO

from PIL import Image

PILLOW_FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
}

PREVIEW_MAX_SIZE = (1200, 1200)


def flatten(image: Image.Image, background: str = "white") -> Image.Image:
    """Composite *image* onto an opaque background (RGB)."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, background)
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas
    return image.convert("RGB")


def encode_image(image: Image.Image, output_format: str) -> bytes:
    """Encode *image* as png or jpg."""
    pillow_format = PILLOW_FORMATS[output_format]
    if pillow_format == "JPEG":
        image = flatten(image)
        options = {"quality": 92}
    else:
        if image.mode not in ("RGB", "RGBA", "L", "LA", "P", "I", "1"):
            image = image.convert("RGBA")
        options = {}
    buffer = BytesIO()
    image.save(buffer, format=pillow_format, **options)
    return buffer.getvalue()


def preview_png(image: Image.Image) -> bytes:
    """Downscaled PNG for display."""
    preview = image.copy()
    preview.thumbnail(PREVIEW_MAX_SIZE)
    return encode_image(preview, "png")


def open_image(data: bytes) -> Image.Image:
    """Open and fully decode an image from bytes."""
    image = Image.open(BytesIO(data))
    image.load()
    return image
