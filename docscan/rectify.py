"""
Perspective rectification and page-level transforms.
"""

from typing import Optional, Sequence

import cv2
import numpy as np

from .geometry import Quadrilateral
from .imaging import Raster, ensure_rgba, flatten_on_white, round_half_up


def output_size(quad: Quadrilateral) -> tuple[int, int]:
    """
    Natural (width, height) of a rectified region.

    Width is the longer of the top and bottom edges, height the longer of
    the left and right edges, so neither pair of edges gets shrunk.
    """
    top = quad.top_left.distance_to(quad.top_right)
    bottom = quad.bottom_left.distance_to(quad.bottom_right)
    left = quad.top_left.distance_to(quad.bottom_left)
    right = quad.top_right.distance_to(quad.bottom_right)

    return int(max(top, bottom) + 0.5), int(max(left, right) + 0.5)


def perspective_crop(image: Raster,
                     quad: Quadrilateral,
                     output_width: Optional[int] = None,
                     output_height: Optional[int] = None) -> Raster:
    """
    Map a quadrilateral region of an image onto an axis-aligned canvas.

    Each destination pixel (x, y) is inverse-mapped by interpolating along
    the top and bottom edges at u = x / width, then between those two points
    at v = y / height. The source is sampled at the nearest pixel; samples
    falling outside the source leave the destination transparent black.

    Args:
        image: RGBA source raster
        quad: Region corners in source coordinates
        output_width: Canvas width (defaults to the longer of top/bottom edges)
        output_height: Canvas height (defaults to the longer of left/right edges)

    Returns:
        Rectified RGBA raster of shape (output_height, output_width, 4)

    Raises:
        ValueError: If the resulting canvas would be empty
    """
    image = ensure_rgba(image)
    natural_width, natural_height = output_size(quad)
    width = output_width or natural_width
    height = output_height or natural_height

    if width < 1 or height < 1:
        raise ValueError(f"Invalid output size {width}x{height} for region {quad}")

    src_height, src_width = image.shape[:2]
    tl, tr, bl, br = quad.top_left, quad.top_right, quad.bottom_left, quad.bottom_right

    u = np.arange(width, dtype=np.float64)[None, :] / width
    v = np.arange(height, dtype=np.float64)[:, None] / height

    top_x = tl.x + u * (tr.x - tl.x)
    top_y = tl.y + u * (tr.y - tl.y)
    bottom_x = bl.x + u * (br.x - bl.x)
    bottom_y = bl.y + u * (br.y - bl.y)

    src_x = round_half_up(top_x + v * (bottom_x - top_x))
    src_y = round_half_up(top_y + v * (bottom_y - top_y))

    inside = (src_x >= 0) & (src_x < src_width) & (src_y >= 0) & (src_y < src_height)

    output = np.zeros((height, width, 4), dtype=np.uint8)
    output[inside] = image[src_y[inside], src_x[inside]]

    return output


def rotate_image(image: Raster, degrees: float) -> Raster:
    """
    Rotate an image clockwise about its centre.

    Multiples of 90 degrees are exact; 90 and 270 swap width and height.
    Any other angle keeps the canvas size, fills uncovered pixels with
    transparent black and clips the corners.

    Args:
        image: RGBA raster
        degrees: Clockwise rotation angle

    Returns:
        Rotated RGBA raster
    """
    image = ensure_rgba(image)

    if float(degrees).is_integer() and int(degrees) % 90 == 0:
        quarter_turns = (int(degrees) // 90) % 4
        # np.rot90 turns counter-clockwise for positive k
        return np.ascontiguousarray(np.rot90(image, k=-quarter_turns))

    height, width = image.shape[:2]
    center = ((width - 1) / 2, (height - 1) / 2)
    # OpenCV treats positive angles as counter-clockwise
    matrix = cv2.getRotationMatrix2D(center, -degrees, 1.0)

    return cv2.warpAffine(
        image,
        matrix,
        (width, height),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )


def combine_pages(images: Sequence[Raster], gap: int = 20) -> Raster:
    """
    Stack pages vertically into a single image.

    Pages are centred horizontally on an opaque white canvas as wide as the
    widest page, separated by gap pixels.

    Args:
        images: Page rasters, top to bottom
        gap: Vertical spacing between pages

    Returns:
        Combined RGBA raster

    Raises:
        ValueError: If no images are given
    """
    if not images:
        raise ValueError("No images to combine")

    pages = [ensure_rgba(img) for img in images]
    width = max(page.shape[1] for page in pages)
    height = sum(page.shape[0] for page in pages) + gap * (len(pages) - 1)

    canvas = np.full((height, width, 4), 255, dtype=np.uint8)

    y = 0
    for page in pages:
        page_height, page_width = page.shape[:2]
        x = (width - page_width) // 2
        canvas[y:y + page_height, x:x + page_width] = flatten_on_white(page)
        y += page_height + gap

    return canvas
