"""Image preprocessing pipeline.

Decodes raw bytes into an RGB pixel tensor (EXIF orientation applied, size
validated), resizes it to the model's fixed input resolution with bilinear
interpolation, rescales pixel values into [0, 1] and adds the batch dimension.
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from snapclassify.errors import DecodeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

# Fixed by the architecture of the loaded classifier.
MODEL_INPUT_SIZE: tuple[int, int] = (224, 224)

_PIXEL_SCALE: float = 255.0


def decode_image(image_bytes: bytes, max_pixels: int) -> NDArray[np.uint8]:
    """Decode raw image bytes into an RGB uint8 numpy array.

    Args:
        image_bytes: Raw file bytes (any format Pillow can read, usually JPEG).
        max_pixels: Upper bound on width * height.

    Returns:
        HxWx3 RGB uint8 numpy array at the image's native dimensions.

    Raises:
        DecodeError: If the image cannot be decoded or exceeds size limits.
    """
    if not image_bytes:
        raise DecodeError("Image payload is empty")

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if width * height > max_pixels:
                raise DecodeError(f"Image is {width}x{height}, exceeding the {max_pixels} pixel limit")
            oriented = ImageOps.exif_transpose(img)
            pixels = np.asarray(oriented.convert("RGB"), dtype=np.uint8)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise DecodeError(f"Cannot decode image: {exc}") from exc

    logger.debug("Decoded image to tensor of shape %s", pixels.shape)
    return pixels


def resize_bilinear(pixels: NDArray[np.generic], size: tuple[int, int]) -> NDArray[np.float32]:
    """Resize an HxWxC tensor with bilinear interpolation.

    Sampling uses ``src = dst * in / out`` (no corner alignment, no half-pixel
    offset), with the last row and column clamped at the border. This is the
    default ``resizeBilinear`` convention of the tensor library the model was
    published for. Pillow's ``Image.resize(..., BILINEAR)`` is not used: it
    samples at half-pixel centers and widens its filter when downscaling
    (antialiasing), so its output differs from what the model was fed.
    """
    if pixels.ndim != 3:
        raise DecodeError(f"Expected an HxWxC pixel tensor, got shape {pixels.shape}")

    in_h, in_w = pixels.shape[:2]
    out_h, out_w = size

    ys = np.arange(out_h, dtype=np.float64) * (in_h / out_h)
    xs = np.arange(out_w, dtype=np.float64) * (in_w / out_w)
    y0 = np.floor(ys).astype(np.intp)
    x0 = np.floor(xs).astype(np.intp)
    y1 = np.minimum(y0 + 1, in_h - 1)
    x1 = np.minimum(x0 + 1, in_w - 1)
    wy = (ys - y0)[:, np.newaxis, np.newaxis]
    wx = (xs - x0)[np.newaxis, :, np.newaxis]

    src = pixels.astype(np.float32)
    top = src[y0][:, x0] * (1.0 - wx) + src[y0][:, x1] * wx
    bottom = src[y1][:, x0] * (1.0 - wx) + src[y1][:, x1] * wx
    return (top * (1.0 - wy) + bottom * wy).astype(np.float32)


def preprocess(pixels: NDArray[np.uint8], size: tuple[int, int] = MODEL_INPUT_SIZE) -> NDArray[np.float32]:
    """Prepare a decoded image for the classifier.

    Returns:
        Float32 tensor of shape (1, height, width, 3) with values in [0, 1].
    """
    resized = resize_bilinear(pixels, size)
    normalized = resized / np.float32(_PIXEL_SCALE)
    return np.expand_dims(normalized, axis=0).astype(np.float32)
