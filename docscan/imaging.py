"""
Raster image helpers: validation, luma, decoding and encoding.

Every image handled by docscan is a numpy array of shape (height, width, 4),
dtype uint8, channels ordered R, G, B, A. OpenCV works in BGR(A), so the
conversion happens here and nowhere else.
"""

import base64
import os

import cv2
import numpy as np
from numpy.typing import NDArray

Raster = NDArray[np.uint8]

_FORMATS: dict[str, str] = {
    "jpeg": ".jpg",
    "jpg": ".jpg",
    "png": ".png",
    "webp": ".webp",
}

_MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}


def ensure_rgba(image: NDArray[np.generic]) -> Raster:
    """
    Validate an array and promote it to an RGBA raster.

    Grayscale (h, w) and RGB (h, w, 3) arrays get copied into opaque RGBA.
    RGBA input is returned as-is.

    Args:
        image: Input array

    Returns:
        uint8 array of shape (h, w, 4)

    Raises:
        ValueError: If the array is not uint8 or has an unsupported shape
    """
    if not isinstance(image, np.ndarray):
        raise ValueError(f"Expected a numpy array, got {type(image).__name__}")
    if image.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixel data, got {image.dtype}")
    if image.ndim < 2 or image.shape[0] == 0 or image.shape[1] == 0:
        raise ValueError(f"Unsupported image shape: {image.shape}")

    if image.ndim == 2:
        rgba = np.empty(image.shape + (4,), dtype=np.uint8)
        rgba[..., :3] = image[..., None]
        rgba[..., 3] = 255
        return rgba

    if image.ndim == 3 and image.shape[2] == 3:
        rgba = np.empty(image.shape[:2] + (4,), dtype=np.uint8)
        rgba[..., :3] = image
        rgba[..., 3] = 255
        return rgba

    if image.ndim == 3 and image.shape[2] == 4:
        return image

    raise ValueError(f"Unsupported image shape: {image.shape}")


def luma(image: NDArray[np.generic]) -> NDArray[np.float64]:
    """
    Per-pixel luma (0.299R + 0.587G + 0.114B) as float64.

    Integer weights keep a neutral grey pixel's luma exactly equal to its
    channel value.
    """
    rgb = image[..., :3].astype(np.float64)
    return (rgb[..., 0] * 299 + rgb[..., 1] * 587 + rgb[..., 2] * 114) / 1000


def to_uint8(values: NDArray[np.floating]) -> Raster:
    """Round to nearest and clamp float pixel values into 0-255."""
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def round_half_up(values: NDArray[np.floating]) -> NDArray[np.int64]:
    """Round .5 towards positive infinity, the way pixel coordinates snap."""
    return np.floor(values + 0.5).astype(np.int64)


def _from_cv2(decoded: NDArray[np.uint8]) -> Raster:
    if decoded.ndim == 2:
        return ensure_rgba(decoded)
    if decoded.shape[2] == 4:
        return cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGBA)


def load_image(image_path: str) -> Raster:
    """
    Load an image file as an RGBA raster.

    Args:
        image_path: Path to the image file

    Returns:
        RGBA raster

    Raises:
        FileNotFoundError: If the image file doesn't exist
        ValueError: If the file exists but isn't a valid image format
    """
    if not os.path.exists(image_path):
        raise FileNotFoundError(f"Image file not found: {image_path}")

    img = cv2.imread(image_path, cv2.IMREAD_UNCHANGED)

    if img is None:
        raise ValueError(f"Invalid image format or corrupted file: {image_path}")

    if img.dtype != np.uint8:
        # 16-bit PNG/TIFF
        img = (img / 257).astype(np.uint8)

    return _from_cv2(img)


def decode_image(data: bytes) -> Raster:
    """
    Decode compressed image bytes (JPEG, PNG, ...) into an RGBA raster.

    Raises:
        ValueError: If the bytes are not a decodable image
    """
    buffer = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED) if buffer.size else None

    if img is None:
        raise ValueError("Could not decode image data")

    return _from_cv2(img)


def _extension(fmt: str) -> str:
    ext = _FORMATS.get(fmt.lower().lstrip("."))
    if ext is None:
        raise ValueError(f"Unknown image format: {fmt}")
    return ext


def encode_image(image: Raster, fmt: str = "jpeg", quality: int = 92) -> bytes:
    """
    Encode a raster to compressed bytes.

    Args:
        image: RGBA raster
        fmt: "jpeg", "png" or "webp"
        quality: JPEG/WebP quality 0-100 (ignored for PNG)

    Returns:
        Encoded image bytes. JPEG drops the alpha channel.
    """
    image = ensure_rgba(image)
    ext = _extension(fmt)

    if ext == ".jpg":
        bgr = cv2.cvtColor(image, cv2.COLOR_RGBA2BGR)
        ok, buffer = cv2.imencode(ext, bgr, [cv2.IMWRITE_JPEG_QUALITY, quality])
    elif ext == ".webp":
        bgra = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
        ok, buffer = cv2.imencode(ext, bgra, [cv2.IMWRITE_WEBP_QUALITY, quality])
    else:
        bgra = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
        ok, buffer = cv2.imencode(ext, bgra)

    if not ok:
        raise ValueError(f"Could not encode image as {fmt}")

    return buffer.tobytes()


def to_data_url(image: Raster, fmt: str = "jpeg", quality: int = 92) -> str:
    """Encode a raster as a base64 data URL."""
    ext = _extension(fmt)
    encoded = base64.b64encode(encode_image(image, fmt, quality)).decode("utf-8")
    return f"data:{_MIME_TYPES[ext]};base64,{encoded}"


def from_data_url(data_url: str) -> Raster:
    """
    Decode a base64 data URL (data:image/...;base64,...) into a raster.

    Raises:
        ValueError: If the string is not a base64 image data URL
    """
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:image/") or not header.endswith(";base64"):
        raise ValueError("Not a base64 image data URL")
    return decode_image(base64.b64decode(payload))


def save_image(image: Raster, path: str, quality: int = 92) -> None:
    """Write a raster to disk; the format follows the file extension."""
    fmt = os.path.splitext(path)[1] or ".jpg"
    with open(path, "wb") as f:
        f.write(encode_image(image, fmt, quality))


def resize_to_fit(image: Raster, max_size: int) -> tuple[Raster, float, float]:
    """
    Downscale an image so its longest side is at most max_size.

    Images already small enough are returned untouched.

    Args:
        image: RGBA raster
        max_size: Maximum width/height in pixels

    Returns:
        Tuple of (resized image, scale_x, scale_y) where the scale factors map
        coordinates in the resized image back to the original
    """
    height, width = image.shape[:2]

    if width <= max_size and height <= max_size:
        return image, 1.0, 1.0

    scale = max_size / max(width, height)
    new_width = max(1, int(width * scale + 0.5))
    new_height = max(1, int(height * scale + 0.5))

    resized = cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)

    return resized, width / new_width, height / new_height


def flatten_on_white(image: Raster) -> Raster:
    """Composite onto an opaque white background; transparent areas turn white."""
    alpha = image[..., 3:4].astype(np.float64) / 255
    rgb = image[..., :3].astype(np.float64) * alpha + 255 * (1 - alpha)
    out = np.empty_like(image)
    out[..., :3] = to_uint8(rgb)
    out[..., 3] = 255
    return out
