"""
Unit tests for the Canny-style edge extractor.
"""

import pytest
import numpy as np
from numpy.typing import NDArray

from docscan.edges import canny_edges, non_maximum_suppression, sobel
from docscan.filters import grayscale


# ============================================================================
# Fixtures
# ============================================================================

def step_image(low: int, high: int, size: int = 20, step_at: int = 10) -> NDArray[np.uint8]:
    """Opaque image: columns left of step_at have value low, the rest high."""
    img = np.zeros((size, size, 4), dtype=np.uint8)
    img[..., :3] = low
    img[:, step_at:, :3] = high
    img[..., 3] = 255
    return img


@pytest.fixture
def strong_step() -> NDArray[np.uint8]:
    return step_image(0, 255)


@pytest.fixture
def faint_step() -> NDArray[np.uint8]:
    return step_image(0, 40)


# ============================================================================
# Sobel
# ============================================================================

def test_sobel_uniform_is_zero():
    img = np.full((10, 10, 4), 200, dtype=np.uint8)
    magnitude, direction = sobel(img)
    assert np.all(magnitude == 0)
    assert np.all(direction == 0)


def test_sobel_vertical_step(strong_step: NDArray[np.uint8]):
    magnitude, direction = sobel(grayscale(strong_step))
    # Each of the three kernel rows sees a 255 jump weighted 1 + 2 + 1
    assert magnitude[5, 10] == pytest.approx(4 * 255)
    assert direction[5, 10] == pytest.approx(0.0)
    assert np.all(magnitude[0] == 0)
    assert np.all(magnitude[:, -1] == 0)


def test_sobel_horizontal_step_direction(strong_step: NDArray[np.uint8]):
    transposed = np.ascontiguousarray(strong_step.transpose(1, 0, 2))
    _, direction = sobel(grayscale(transposed))
    assert direction[10, 5] == pytest.approx(np.pi / 2)


# ============================================================================
# Non-maximum suppression
# ============================================================================

def test_nms_keeps_ridge_only():
    magnitude = np.zeros((5, 7))
    magnitude[1:4, 2] = 50
    magnitude[1:4, 3] = 100
    magnitude[1:4, 4] = 50
    direction = np.zeros((5, 7))

    suppressed = non_maximum_suppression(magnitude, direction)

    assert np.all(suppressed[1:4, 3] == 100)
    assert np.all(suppressed[1:4, 2] == 0)
    assert np.all(suppressed[1:4, 4] == 0)


def test_nms_uses_gradient_orientation():
    magnitude = np.zeros((5, 5))
    magnitude[2, 2] = 10
    magnitude[1, 2] = 20
    direction = np.full((5, 5), np.pi / 2)

    suppressed = non_maximum_suppression(magnitude, direction)

    # Vertical gradient compares against the pixel above: 10 < 20
    assert suppressed[2, 2] == 0
    assert suppressed[1, 2] == 20


def test_nms_plateau_keeps_both():
    magnitude = np.zeros((3, 4))
    magnitude[1, 1] = 30
    magnitude[1, 2] = 30
    suppressed = non_maximum_suppression(magnitude, np.zeros((3, 4)))
    assert suppressed[1, 1] == 30
    assert suppressed[1, 2] == 30


# ============================================================================
# Canny
# ============================================================================

def test_canny_strong_step_edges(strong_step: NDArray[np.uint8]):
    edges = canny_edges(strong_step, 50, 150)

    # Blur spreads the step over columns 9 and 10, which tie on magnitude
    assert np.all(edges[1:-1, 9:11, 0] == 255)
    assert np.count_nonzero(edges[..., 0]) == 2 * 18


def test_canny_faint_step_is_weak(faint_step: NDArray[np.uint8]):
    edges = canny_edges(faint_step, 50, 150)
    assert np.all(edges[1:-1, 9:11, 0] == 128)


def test_canny_output_format(strong_step: NDArray[np.uint8]):
    edges = canny_edges(strong_step)
    assert edges.shape == strong_step.shape
    assert edges.dtype == np.uint8
    assert set(np.unique(edges[..., 0])).issubset({0, 128, 255})
    assert np.array_equal(edges[..., 0], edges[..., 1])
    assert np.array_equal(edges[..., 0], edges[..., 2])
    assert np.all(edges[..., 3] == 255)


def test_canny_border_is_zero():
    rng = np.random.default_rng(7)
    img = rng.integers(0, 256, size=(30, 30, 4), dtype=np.uint8)
    edges = canny_edges(img, 10, 20)
    assert np.all(edges[0, :, :3] == 0)
    assert np.all(edges[-1, :, :3] == 0)
    assert np.all(edges[:, 0, :3] == 0)
    assert np.all(edges[:, -1, :3] == 0)


def test_canny_deterministic():
    rng = np.random.default_rng(3)
    img = rng.integers(0, 256, size=(25, 35, 4), dtype=np.uint8)
    np.testing.assert_array_equal(canny_edges(img, 30, 100), canny_edges(img, 30, 100))


def test_canny_rejects_inverted_thresholds(strong_step: NDArray[np.uint8]):
    with pytest.raises(ValueError):
        canny_edges(strong_step, 200, 100)
