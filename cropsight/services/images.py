"""
Image preparation for the analysis pipeline

Uploads are decoded with Pillow, rotated per EXIF, converted to RGB, downscaled
and re-encoded as JPEG before they are sent to the generation service.
"""

import logging
from io import BytesIO
from typing import List, Optional, Sequence

from PIL import Image, ImageOps, UnidentifiedImageError

from cropsight.services.pipeline import ImagePayload
from cropsight.config import JPEG_QUALITY, MAX_IMAGE_BYTES, MAX_IMAGE_DIMENSION, MAX_IMAGES

logger = logging.getLogger(__name__)


class InvalidImageError(ValueError):
    """Upload is not a usable image"""


def prepare_image(
    raw: bytes,
    filename: Optional[str] = None,
    max_dimension: int = MAX_IMAGE_DIMENSION,
) -> ImagePayload:
    """
    Decode, normalise and re-encode one uploaded image.

    Raises:
        InvalidImageError: empty, too large, or not decodable as an image
    """
    name = filename or "image"
    if not raw:
        raise InvalidImageError(f"{name}: empty file")
    if len(raw) > MAX_IMAGE_BYTES:
        raise InvalidImageError(
            f"{name}: {len(raw) / (1024 * 1024):.1f} MB exceeds the {MAX_IMAGE_BYTES // (1024 * 1024)} MB limit"
        )

    try:
        with Image.open(BytesIO(raw)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGB")

            w, h = img.size
            if max(w, h) > max_dimension:
                scale = max_dimension / float(max(w, h))
                new_size = (max(1, int(w * scale)), max(1, int(h * scale)))
                img = img.resize(new_size, Image.LANCZOS)
                logger.debug(f"Downscaled {name} from {w}x{h} to {new_size[0]}x{new_size[1]}")

            out = BytesIO()
            img.save(out, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f"{name}: not a readable image ({e})") from e
    except Image.DecompressionBombError as e:
        raise InvalidImageError(f"{name}: image dimensions too large") from e

    data = out.getvalue()
    logger.info(f"Prepared {name}: {len(raw)} -> {len(data)} bytes")
    return ImagePayload(data=data, mime_type="image/jpeg")


def prepare_images(uploads: Sequence[bytes], filenames: Optional[Sequence[str]] = None) -> List[ImagePayload]:
    """
    Prepare every upload of one request, keeping order.

    Raises:
        InvalidImageError: no images, too many images, or one is unusable
    """
    if not uploads:
        raise InvalidImageError("at least one image is required")
    if len(uploads) > MAX_IMAGES:
        raise InvalidImageError(f"at most {MAX_IMAGES} images per analysis, got {len(uploads)}")

    names = list(filenames or [])
    return [
        prepare_image(raw, names[i] if i < len(names) else f"image {i + 1}")
        for i, raw in enumerate(uploads)
    ]
