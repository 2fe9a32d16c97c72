"""
Scan pipeline: detect -> rectify -> enhance -> rotate.

The functions here only orchestrate; every stage is a pure function from the
other modules, so independent scans can run concurrently in separate
threads or processes.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .config import ScannerConfig
from .enhance import DOCUMENT_PRESET, EnhancementSettings, enhance
from .exceptions import ScanCancelled
from .geometry import DetectionResult, Quadrilateral, detect_document_edges
from .imaging import Raster, ensure_rgba, load_image
from .rectify import combine_pages, perspective_crop, rotate_image

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], bool]


@dataclass
class ScanResult:
    """
    Output of one page scan.

    Attributes:
        image: Final page image
        detection: Detection outcome (None when corners were supplied)
        cropped: Whether perspective correction was applied
    """
    image: Raster
    detection: Optional[DetectionResult]
    cropped: bool


def _check(should_cancel: Optional[CancelCheck], stage: str) -> None:
    if should_cancel is not None and should_cancel():
        raise ScanCancelled(stage)


def scan_image(image: Raster,
               settings: Optional[EnhancementSettings] = DOCUMENT_PRESET,
               config: Optional[ScannerConfig] = None,
               rotation: float = 0,
               corners: Optional[Quadrilateral] = None,
               auto_crop: bool = True,
               should_cancel: Optional[CancelCheck] = None) -> ScanResult:
    """
    Turn a photographed page into a clean, deskewed document image.

    Pipeline steps:
    1. Detect the document region (skipped when corners are given)
    2. Perspective-crop if the detection confidence exceeds
       config.auto_crop_confidence, otherwise keep the full photo
    3. Enhance (skipped when settings is None)
    4. Rotate (skipped for 0)

    Args:
        image: RGBA raster of the photo
        settings: Enhancement settings, or None to skip enhancement
        config: Pipeline configuration (defaults to ScannerConfig())
        rotation: Clockwise rotation applied last, in degrees
        corners: Manually adjusted region; bypasses detection
        auto_crop: Set False to detect but never crop
        should_cancel: Optional check polled between stages

    Returns:
        ScanResult

    Raises:
        ScanCancelled: If should_cancel returns True
    """
    config = config or ScannerConfig()
    image = ensure_rgba(image)

    detection: Optional[DetectionResult] = None
    region = corners

    if region is None and auto_crop:
        _check(should_cancel, "edge detection")
        detection = detect_document_edges(image, config, should_cancel)
        if detection.corners is not None and detection.confidence > config.auto_crop_confidence:
            region = detection.corners
        else:
            logger.info(
                "Keeping full image (detection confidence %.2f)", detection.confidence
            )

    page = image
    if region is not None:
        _check(should_cancel, "perspective crop")
        page = perspective_crop(image, region)

    if settings is not None:
        _check(should_cancel, "enhancement")
        page = enhance(page, settings)

    if rotation:
        _check(should_cancel, "rotation")
        page = rotate_image(page, rotation)

    logger.debug("Scanned page %dx%d", page.shape[1], page.shape[0])

    return ScanResult(image=page, detection=detection, cropped=region is not None)


def scan_file(image_path: str, **kwargs) -> ScanResult:
    """Load an image file and run scan_image on it (same keyword arguments)."""
    return scan_image(load_image(image_path), **kwargs)


def scan_pages(images: Sequence[Raster],
               config: Optional[ScannerConfig] = None,
               **kwargs) -> tuple[Raster, list[ScanResult]]:
    """
    Scan several pages and stack them into one image.

    Args:
        images: Page photos, top to bottom
        config: Pipeline configuration; its page_gap separates the pages
        **kwargs: Passed through to scan_image

    Returns:
        Tuple of (combined image, per-page results)

    Raises:
        ValueError: If no images are given
    """
    if not images:
        raise ValueError("No images to combine")

    config = config or ScannerConfig()
    results = [scan_image(img, config=config, **kwargs) for img in images]
    combined = combine_pages([r.image for r in results], gap=config.page_gap)

    return combined, results
