"""Downscaling and JPEG compression for uploaded recipe photos."""

from __future__ import annotations

import io

from PIL import Image, ImageOps, UnidentifiedImageError

DEFAULT_MAX_DIMENSION = 1600
DEFAULT_QUALITY = 80


class UnsupportedImageError(ValueError):
    """Raised when uploaded bytes cannot be decoded as an image."""


def compress_image(
    image_data: bytes,
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: int = DEFAULT_QUALITY,
) -> bytes:
    """Return ``image_data`` re-encoded as JPEG.

    The longer side is scaled down to ``max_dimension`` pixels. Smaller
    images are only re-encoded, never enlarged.
    """

    try:
        image = Image.open(io.BytesIO(image_data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise UnsupportedImageError("The uploaded file is not a readable image.") from exc

    with image:
        image = ImageOps.exif_transpose(image)

        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            image = background
        elif image.mode != "RGB":
            image = image.convert("RGB")

        width, height = image.size
        scale = max_dimension / max(width, height)
        if scale < 1.0:
            new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
            image = image.resize(new_size, Image.Resampling.LANCZOS)

        output = io.BytesIO()
        image.save(output, format="JPEG", quality=quality, optimize=True)
        return output.getvalue()


__all__ = ["UnsupportedImageError", "compress_image"]
