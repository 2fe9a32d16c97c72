"""
Kernel filters: grayscale conversion and 3x3 neighbourhood operations.

All filters take an RGBA raster and return a new one of the same size. Only
the R, G, B channels are processed; alpha is copied through. The 3x3 filters
compute interior pixels only and copy the one-pixel border from the source,
so every filter composes with the same border behaviour.
"""

import numpy as np
from numpy.typing import NDArray

from .imaging import Raster, ensure_rgba, luma, to_uint8

GAUSSIAN_KERNEL: NDArray[np.float64] = np.array([
    [1, 2, 1],
    [2, 4, 2],
    [1, 2, 1],
], dtype=np.float64) / 16

SHARPEN_KERNEL: NDArray[np.float64] = np.array([
    [0, -1, 0],
    [-1, 5, -1],
    [0, -1, 0],
], dtype=np.float64)


def neighbourhood(channels: NDArray[np.generic]) -> list[NDArray[np.generic]]:
    """
    Return the nine shifted views that make up each interior 3x3 window.

    Views are ordered row by row (dy = -1, 0, 1; dx = -1, 0, 1), each with
    shape (h - 2, w - 2, ...), aligned on the interior pixels.
    """
    height, width = channels.shape[:2]
    return [
        channels[1 + dy:height - 1 + dy, 1 + dx:width - 1 + dx]
        for dy in (-1, 0, 1)
        for dx in (-1, 0, 1)
    ]


def convolve3x3(channels: NDArray[np.generic], kernel: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Correlate the interior of a (h, w) or (h, w, c) array with a 3x3 kernel.

    Returns:
        float64 array of shape (h - 2, w - 2, ...)
    """
    views = neighbourhood(channels)
    result = np.zeros(views[4].shape, dtype=np.float64)
    for weight, view in zip(kernel.ravel(), views):
        if weight:
            result += weight * view
    return result


def _with_interior(image: Raster, interior_rgb: Raster) -> Raster:
    output = image.copy()
    output[1:-1, 1:-1, :3] = interior_rgb
    return output


def _too_small(image: Raster) -> bool:
    # A 3x3 window needs at least one interior pixel
    return image.shape[0] < 3 or image.shape[1] < 3


def grayscale(image: Raster) -> Raster:
    """
    Convert to grayscale by writing the luma into all three color channels.

    Args:
        image: RGBA raster

    Returns:
        RGBA raster with R == G == B; idempotent
    """
    image = ensure_rgba(image)
    output = image.copy()
    output[..., :3] = to_uint8(luma(image))[..., None]
    return output


def gaussian_blur(image: Raster) -> Raster:
    """
    Apply the 3x3 Gaussian kernel [[1,2,1],[2,4,2],[1,2,1]] / 16.

    Args:
        image: RGBA raster

    Returns:
        Blurred raster; border pixels copied from the source
    """
    image = ensure_rgba(image)
    if _too_small(image):
        return image.copy()

    blurred = convolve3x3(image[..., :3], GAUSSIAN_KERNEL)
    return _with_interior(image, to_uint8(blurred))


def sharpen(image: Raster, amount: float) -> Raster:
    """
    Unsharp-mask sharpening blended with the original.

    Each interior pixel becomes lerp(original, convolved, amount) with the
    kernel [[0,-1,0],[-1,5,-1],[0,-1,0]], clamped to 0-255.

    Args:
        image: RGBA raster
        amount: Blend factor in [0, 1]; 0 leaves the image unchanged

    Returns:
        Sharpened raster; border pixels copied from the source

    Raises:
        ValueError: If amount is outside [0, 1]
    """
    if not 0.0 <= amount <= 1.0:
        raise ValueError(f"Sharpen amount must be in [0, 1], got {amount}")

    image = ensure_rgba(image)
    if _too_small(image):
        return image.copy()

    rgb = image[..., :3]
    convolved = convolve3x3(rgb, SHARPEN_KERNEL)
    original = rgb[1:-1, 1:-1].astype(np.float64)
    blended = original * (1 - amount) + convolved * amount

    return _with_interior(image, to_uint8(blended))


def median_filter(image: Raster) -> Raster:
    """
    Per-channel 3x3 median: removes speckle noise while keeping edges sharper
    than a blur would.

    Args:
        image: RGBA raster

    Returns:
        Denoised raster; border pixels copied from the source
    """
    image = ensure_rgba(image)
    if _too_small(image):
        return image.copy()

    windows = np.stack(neighbourhood(image[..., :3]), axis=0)
    median = np.sort(windows, axis=0)[4]

    return _with_interior(image, median)
