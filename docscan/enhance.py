"""
Image enhancement for scanned documents.

enhance() applies, in order: histogram-driven auto adjustment, a fused
brightness/contrast/saturation pass, optional grayscale, optional
black-and-white thresholding, sharpening and median denoising.
"""

from dataclasses import dataclass

import numpy as np

from .filters import median_filter, sharpen
from .imaging import Raster, ensure_rgba, luma, round_half_up, to_uint8


@dataclass(frozen=True)
class EnhancementSettings:
    """
    Enhancement knobs.

    Attributes:
        brightness: Additive offset, -100 to 100 (percent of full scale)
        contrast: -100 to 100
        sharpness: Unsharp-mask strength, 0 to 100
        saturation: -100 (fully desaturated) to 100
        denoise: Apply a 3x3 median filter last
        auto_enhance: Derive extra contrast/brightness from the histogram
        grayscale: Replace colors with luma
        black_and_white: Threshold luma to pure black/white
        threshold: Luma above which a pixel turns white, 0 to 255
    """
    brightness: float = 0
    contrast: float = 10
    sharpness: float = 30
    saturation: float = 0
    denoise: bool = True
    auto_enhance: bool = True
    grayscale: bool = False
    black_and_white: bool = False
    threshold: float = 128

    def __post_init__(self) -> None:
        for name, low, high in (
            ("brightness", -100, 100),
            ("contrast", -100, 100),
            ("sharpness", 0, 100),
            ("saturation", -100, 100),
            ("threshold", 0, 255),
        ):
            value = getattr(self, name)
            if not low <= value <= high:
                raise ValueError(f"{name} must be between {low} and {high}, got {value}")


DEFAULT_ENHANCEMENT = EnhancementSettings()

DOCUMENT_PRESET = EnhancementSettings(
    brightness=10,
    contrast=25,
    sharpness=40,
    saturation=-30,
    denoise=True,
    auto_enhance=True,
)

BW_DOCUMENT_PRESET = EnhancementSettings(
    brightness=15,
    contrast=40,
    sharpness=50,
    saturation=-100,
    denoise=True,
    auto_enhance=False,
    black_and_white=True,
    threshold=140,
)

PRESETS: dict[str, EnhancementSettings] = {
    "default": DEFAULT_ENHANCEMENT,
    "document": DOCUMENT_PRESET,
    "bw": BW_DOCUMENT_PRESET,
}


def luma_percentiles(image: Raster) -> tuple[int, int]:
    """
    5th and 95th percentile of the rounded luma histogram.

    Each bound is the highest intensity whose cumulative count is still below
    the percentile (0 and 255 when no intensity qualifies).
    """
    gray = round_half_up(luma(image))
    histogram = np.bincount(gray.ravel(), minlength=256)
    cumulative = np.cumsum(histogram)
    total = gray.size

    below_low = np.flatnonzero(cumulative < total * 0.05)
    below_high = np.flatnonzero(cumulative < total * 0.95)

    low = int(below_low[-1]) if below_low.size else 0
    high = int(below_high[-1]) if below_high.size else 255

    return low, high


def auto_adjustments(image: Raster, contrast: float, brightness: float) -> tuple[float, float]:
    """
    Raise contrast for a narrow histogram and brightness for a dark floor.

    Args:
        image: Image before any adjustment
        contrast: User contrast
        brightness: User brightness

    Returns:
        Tuple of (contrast, brightness) after adjustment
    """
    low, high = luma_percentiles(image)
    spread = high - low

    if spread < 200:
        contrast += (200 - spread) / 4
    if low > 30:
        brightness += (low - 30) / 2

    return contrast, brightness


def enhance(image: Raster, settings: EnhancementSettings = DEFAULT_ENHANCEMENT) -> Raster:
    """
    Enhance a document image.

    Args:
        image: RGBA raster
        settings: Enhancement settings (see the presets in this module)

    Returns:
        Enhanced RGBA raster of the same size; alpha is preserved
    """
    image = ensure_rgba(image)
    contrast, brightness = settings.contrast, settings.brightness

    if settings.auto_enhance:
        contrast, brightness = auto_adjustments(image, contrast, brightness)

    contrast_factor = (259 * (contrast + 255)) / (255 * (259 - contrast))
    saturation_factor = 1 + settings.saturation / 100

    rgb = image[..., :3].astype(np.float64) + brightness * 2.55
    rgb = contrast_factor * (rgb - 128) + 128
    gray = luma(rgb)[..., None]
    rgb = gray + saturation_factor * (rgb - gray)

    output = image.copy()
    output[..., :3] = to_uint8(rgb)

    if settings.grayscale:
        output[..., :3] = to_uint8(luma(output))[..., None]

    if settings.black_and_white:
        white = luma(output) > settings.threshold
        output[..., :3] = np.where(white, 255, 0).astype(np.uint8)[..., None]

    if settings.sharpness > 0:
        output = sharpen(output, settings.sharpness / 100)

    if settings.denoise:
        output = median_filter(output)

    return output
