"""
Unit tests for the kernel filters using synthetic rasters.
"""

import pytest
import numpy as np
from numpy.typing import NDArray

from docscan.filters import gaussian_blur, grayscale, median_filter, sharpen
from docscan.imaging import ensure_rgba


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def color_image() -> NDArray[np.uint8]:
    """Random RGBA image with varying alpha."""
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, size=(40, 50, 4), dtype=np.uint8)


@pytest.fixture
def impulse_image() -> NDArray[np.uint8]:
    """Black 9x9 opaque image with a single bright pixel in the centre."""
    img = np.zeros((9, 9, 4), dtype=np.uint8)
    img[..., 3] = 255
    img[4, 4, :3] = 160
    return img


def assert_border_copied(result: NDArray[np.uint8], source: NDArray[np.uint8]) -> None:
    np.testing.assert_array_equal(result[0], source[0])
    np.testing.assert_array_equal(result[-1], source[-1])
    np.testing.assert_array_equal(result[:, 0], source[:, 0])
    np.testing.assert_array_equal(result[:, -1], source[:, -1])


# ============================================================================
# Raster validation
# ============================================================================

def test_ensure_rgba_promotes_grayscale():
    gray = np.full((4, 5), 77, dtype=np.uint8)
    rgba = ensure_rgba(gray)
    assert rgba.shape == (4, 5, 4)
    assert np.all(rgba[..., :3] == 77)
    assert np.all(rgba[..., 3] == 255)


def test_ensure_rgba_promotes_rgb():
    rgb = np.zeros((3, 3, 3), dtype=np.uint8)
    rgb[..., 0] = 10
    rgba = ensure_rgba(rgb)
    assert rgba.shape == (3, 3, 4)
    assert np.all(rgba[..., 0] == 10)
    assert np.all(rgba[..., 3] == 255)


@pytest.mark.parametrize("bad", [
    np.zeros((4, 4, 4), dtype=np.float32),
    np.zeros((4, 4, 2), dtype=np.uint8),
    np.zeros((0, 4, 4), dtype=np.uint8),
    np.zeros(10, dtype=np.uint8),
])
def test_ensure_rgba_rejects_invalid(bad: NDArray[np.generic]):
    with pytest.raises(ValueError):
        ensure_rgba(bad)


# ============================================================================
# Grayscale
# ============================================================================

def test_grayscale_equal_channels(color_image: NDArray[np.uint8]):
    gray = grayscale(color_image)
    assert gray.shape == color_image.shape
    assert np.array_equal(gray[..., 0], gray[..., 1])
    assert np.array_equal(gray[..., 1], gray[..., 2])


def test_grayscale_preserves_alpha(color_image: NDArray[np.uint8]):
    gray = grayscale(color_image)
    np.testing.assert_array_equal(gray[..., 3], color_image[..., 3])


def test_grayscale_luma_weights():
    img = np.zeros((1, 3, 4), dtype=np.uint8)
    img[0, 0, :3] = (255, 0, 0)
    img[0, 1, :3] = (0, 255, 0)
    img[0, 2, :3] = (0, 0, 255)
    gray = grayscale(img)
    assert list(gray[0, :, 0]) == [76, 150, 29]


def test_grayscale_idempotent(color_image: NDArray[np.uint8]):
    once = grayscale(color_image)
    twice = grayscale(once)
    np.testing.assert_array_equal(once, twice)


def test_grayscale_does_not_modify_input(color_image: NDArray[np.uint8]):
    original = color_image.copy()
    grayscale(color_image)
    np.testing.assert_array_equal(color_image, original)


# ============================================================================
# Gaussian blur
# ============================================================================

def test_gaussian_blur_kernel_weights(impulse_image: NDArray[np.uint8]):
    blurred = gaussian_blur(impulse_image)
    assert blurred[4, 4, 0] == 40   # 160 * 4 / 16
    assert blurred[3, 4, 0] == 20   # 160 * 2 / 16
    assert blurred[4, 5, 1] == 20
    assert blurred[3, 3, 2] == 10   # 160 * 1 / 16
    assert blurred[2, 2, 0] == 0


def test_gaussian_blur_copies_border(color_image: NDArray[np.uint8]):
    blurred = gaussian_blur(color_image)
    assert blurred.shape == color_image.shape
    assert_border_copied(blurred, color_image)
    np.testing.assert_array_equal(blurred[..., 3], color_image[..., 3])


def test_gaussian_blur_uniform_unchanged():
    img = np.full((10, 12, 4), 123, dtype=np.uint8)
    np.testing.assert_array_equal(gaussian_blur(img), img)


# ============================================================================
# Sharpen
# ============================================================================

def test_sharpen_zero_amount_is_identity(color_image: NDArray[np.uint8]):
    np.testing.assert_array_equal(sharpen(color_image, 0.0), color_image)


def test_sharpen_uniform_unchanged():
    img = np.full((8, 8, 4), 90, dtype=np.uint8)
    np.testing.assert_array_equal(sharpen(img, 1.0), img)


def test_sharpen_amplifies_impulse(impulse_image: NDArray[np.uint8]):
    sharp = sharpen(impulse_image, 1.0)
    # 5 * 160 clamps to 255, the 4-neighbours go negative and clamp to 0
    assert sharp[4, 4, 0] == 255
    assert sharp[3, 4, 0] == 0


def test_sharpen_half_amount_blends():
    img = np.zeros((5, 5, 4), dtype=np.uint8)
    img[2, 2, :3] = 40
    sharp = sharpen(img, 0.5)
    # 0.5 * 40 + 0.5 * 200
    assert sharp[2, 2, 0] == 120


def test_sharpen_copies_border(color_image: NDArray[np.uint8]):
    sharp = sharpen(color_image, 0.7)
    assert sharp.shape == color_image.shape
    assert_border_copied(sharp, color_image)
    np.testing.assert_array_equal(sharp[..., 3], color_image[..., 3])


@pytest.mark.parametrize("amount", [-0.1, 1.5])
def test_sharpen_rejects_invalid_amount(color_image: NDArray[np.uint8], amount: float):
    with pytest.raises(ValueError):
        sharpen(color_image, amount)


# ============================================================================
# Median filter
# ============================================================================

def test_median_filter_removes_impulse(impulse_image: NDArray[np.uint8]):
    denoised = median_filter(impulse_image)
    assert np.all(denoised[..., :3] == 0)
    assert np.all(denoised[..., 3] == 255)


def test_median_filter_takes_fifth_value():
    img = np.zeros((3, 3, 4), dtype=np.uint8)
    img[..., 0] = np.arange(9, dtype=np.uint8).reshape(3, 3) * 10
    assert median_filter(img)[1, 1, 0] == 40


def test_median_filter_copies_border(color_image: NDArray[np.uint8]):
    denoised = median_filter(color_image)
    assert denoised.shape == color_image.shape
    assert_border_copied(denoised, color_image)


# ============================================================================
# Shared behaviour
# ============================================================================

@pytest.mark.parametrize("apply", [
    grayscale,
    gaussian_blur,
    median_filter,
    lambda img: sharpen(img, 0.4),
])
def test_filters_are_deterministic(color_image: NDArray[np.uint8], apply):
    np.testing.assert_array_equal(apply(color_image), apply(color_image))


@pytest.mark.parametrize("apply", [gaussian_blur, median_filter, lambda img: sharpen(img, 1.0)])
def test_tiny_images_pass_through(apply):
    img = np.arange(16, dtype=np.uint8).reshape(2, 2, 4)
    np.testing.assert_array_equal(apply(img), img)
