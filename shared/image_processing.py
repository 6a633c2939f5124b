"""
Image processing utilities.

Prepares the user's source image for the video backend: center-crop to the
target aspect ratio (no letterboxing) and resize to the canonical resolution.
"""

import io
from typing import Tuple
from PIL import Image, UnidentifiedImageError

from shared.errors import ValidationError
from shared.logging import get_logger
from shared.models.generation import AspectRatio

logger = get_logger("image_processing")

CANONICAL_RESOLUTIONS = {
    AspectRatio.LANDSCAPE: (1920, 1080),
    AspectRatio.PORTRAIT: (1080, 1920),
}

_FORMAT_MIME_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


def detect_mime_type(image_bytes: bytes) -> str:
    """
    Detect the MIME type of an encoded image.

    Args:
        image_bytes: Raw image bytes

    Returns:
        MIME type string (e.g., "image/png")

    Raises:
        ValidationError: If the bytes are not a supported image
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"Source image could not be decoded: {str(e)}") from e

    mime_type = _FORMAT_MIME_TYPES.get(image_format or "")
    if mime_type is None:
        raise ValidationError(f"Unsupported source image format: {image_format}")
    return mime_type


def center_crop_box(size: Tuple[int, int], aspect_ratio: AspectRatio) -> Tuple[int, int, int, int]:
    """
    Compute the largest centered box of the target aspect ratio.

    A source wider than the target loses width only; a taller source loses
    height only.

    Args:
        size: Source (width, height)
        aspect_ratio: Target aspect ratio

    Returns:
        (left, upper, right, lower) crop box
    """
    width, height = size
    target_width, target_height = CANONICAL_RESOLUTIONS[aspect_ratio]

    # Compare width/height ratios with integer cross-multiplication
    if width * target_height > height * target_width:
        crop_width = round(height * target_width / target_height)
        left = (width - crop_width) // 2
        return (left, 0, left + crop_width, height)

    crop_height = round(width * target_height / target_width)
    upper = (height - crop_height) // 2
    return (0, upper, width, upper + crop_height)


def prepare_video_frame(
    image_bytes: bytes,
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE,
    target_format: str = "JPEG"
) -> bytes:
    """
    Crop and resize a source image to the canonical video resolution.

    - Center crop to aspect_ratio
    - Resize to 1920x1080 (16:9) or 1080x1920 (9:16)
    - Convert to target_format (default: JPEG)

    Args:
        image_bytes: Raw image bytes
        aspect_ratio: Target aspect ratio
        target_format: Output format - "JPEG" or "PNG"

    Returns:
        Processed image bytes

    Raises:
        ValidationError: If image cannot be processed
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        logger.error(f"Failed to decode source image: {str(e)}")
        raise ValidationError(f"Failed to process image: {str(e)}") from e

    original_size = image.size
    box = center_crop_box(original_size, aspect_ratio)
    target_size = CANONICAL_RESOLUTIONS[aspect_ratio]

    image = image.crop(box).resize(target_size, Image.Resampling.LANCZOS)

    if target_format == "JPEG" and image.mode != "RGB":
        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            # Flatten transparency onto white
            rgba_image = image.convert("RGBA")
            rgb_image = Image.new("RGB", image.size, (255, 255, 255))
            rgb_image.paste(rgba_image, mask=rgba_image.split()[3])
            image = rgb_image
        else:
            image = image.convert("RGB")

    output = io.BytesIO()
    if target_format == "JPEG":
        image.save(output, format="JPEG", quality=95, optimize=True)
    else:
        image.save(output, format=target_format, optimize=True)

    logger.debug(
        "Prepared video frame",
        extra={
            "original_size": f"{original_size[0]}x{original_size[1]}",
            "crop_box": str(box),
            "target_size": f"{target_size[0]}x{target_size[1]}",
        }
    )
    return output.getvalue()
