"""
Canny-style edge extraction.

blur -> grayscale -> Sobel gradients -> non-maximum suppression -> double
threshold. Weak edges are kept as 128 rather than linked to strong ones by
hysteresis; the line and contour detectors downstream are tuned for that.
"""

import numpy as np
from numpy.typing import NDArray

from .filters import convolve3x3, gaussian_blur, grayscale
from .imaging import Raster, ensure_rgba

SOBEL_X: NDArray[np.float64] = np.array([
    [-1, 0, 1],
    [-2, 0, 2],
    [-1, 0, 1],
], dtype=np.float64)

SOBEL_Y: NDArray[np.float64] = np.array([
    [-1, -2, -1],
    [0, 0, 0],
    [1, 2, 1],
], dtype=np.float64)

STRONG_EDGE = 255
WEAK_EDGE = 128


def sobel(gray: Raster) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Gradient magnitude and direction of a grayscale raster.

    Reads the red channel (the image is expected to be grayscale already).

    Args:
        gray: Grayscale RGBA raster

    Returns:
        Tuple of (magnitude, direction) arrays of shape (h, w). Direction is
        atan2(gy, gx) in radians. Border pixels are 0 in both.
    """
    height, width = gray.shape[:2]
    magnitude = np.zeros((height, width), dtype=np.float64)
    direction = np.zeros((height, width), dtype=np.float64)

    if height < 3 or width < 3:
        return magnitude, direction

    intensity = gray[..., 0].astype(np.float64)
    gx = convolve3x3(intensity, SOBEL_X)
    gy = convolve3x3(intensity, SOBEL_Y)

    magnitude[1:-1, 1:-1] = np.sqrt(gx * gx + gy * gy)
    direction[1:-1, 1:-1] = np.arctan2(gy, gx)

    return magnitude, direction


def non_maximum_suppression(magnitude: NDArray[np.float64],
                            direction: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Thin gradient ridges to single-pixel width.

    The gradient direction of each interior pixel is bucketed to 0, 45, 90 or
    135 degrees (boundaries at +/-22.5 degrees); the magnitude survives only if
    it is >= both neighbours along that orientation.

    Returns:
        Suppressed magnitude array; border pixels are 0
    """
    height, width = magnitude.shape
    suppressed = np.zeros_like(magnitude)

    if height < 3 or width < 3:
        return suppressed

    def shifted(dy: int, dx: int) -> NDArray[np.float64]:
        return magnitude[1 + dy:height - 1 + dy, 1 + dx:width - 1 + dx]

    mag = magnitude[1:-1, 1:-1]
    angle = np.degrees(direction[1:-1, 1:-1])

    horizontal = ((angle >= -22.5) & (angle < 22.5)) | (angle >= 157.5) | (angle < -157.5)
    diagonal_up = ((angle >= 22.5) & (angle < 67.5)) | ((angle >= -157.5) & (angle < -112.5))
    vertical = ((angle >= 67.5) & (angle < 112.5)) | ((angle >= -112.5) & (angle < -67.5))

    # 135 degree bucket by default
    neighbour1 = shifted(-1, -1).copy()
    neighbour2 = shifted(1, 1).copy()

    neighbour1[horizontal] = shifted(0, -1)[horizontal]
    neighbour2[horizontal] = shifted(0, 1)[horizontal]

    neighbour1[diagonal_up] = shifted(-1, 1)[diagonal_up]
    neighbour2[diagonal_up] = shifted(1, -1)[diagonal_up]

    neighbour1[vertical] = shifted(-1, 0)[vertical]
    neighbour2[vertical] = shifted(1, 0)[vertical]

    keep = (mag >= neighbour1) & (mag >= neighbour2)
    suppressed[1:-1, 1:-1] = np.where(keep, mag, 0.0)

    return suppressed


def canny_edges(image: Raster,
                low_threshold: float = 50,
                high_threshold: float = 150) -> Raster:
    """
    Detect edges in an image.

    Args:
        image: RGBA raster
        low_threshold: Suppressed magnitude at or above which a pixel is a
            weak edge (128)
        high_threshold: Suppressed magnitude at or above which a pixel is a
            strong edge (255)

    Returns:
        Edge map as an RGBA raster: R == G == B in {0, 128, 255}, alpha 255

    Raises:
        ValueError: If low_threshold is greater than high_threshold
    """
    if low_threshold > high_threshold:
        raise ValueError(
            f"low_threshold ({low_threshold}) must not exceed high_threshold ({high_threshold})"
        )

    image = ensure_rgba(image)
    gray = grayscale(gaussian_blur(image))
    magnitude, direction = sobel(gray)
    suppressed = non_maximum_suppression(magnitude, direction)

    values = np.where(
        suppressed >= high_threshold,
        STRONG_EDGE,
        np.where(suppressed >= low_threshold, WEAK_EDGE, 0),
    ).astype(np.uint8)

    edges = np.empty(image.shape, dtype=np.uint8)
    edges[..., :3] = values[..., None]
    edges[..., 3] = 255

    return edges
