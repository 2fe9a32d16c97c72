"""
End-to-end tests for the scan pipeline on synthetic photos.
"""

from pathlib import Path

import pytest
import numpy as np
from numpy.typing import NDArray

from docscan.config import ScannerConfig
from docscan.exceptions import ScanCancelled
from docscan.geometry import Quadrilateral
from docscan.imaging import luma, save_image
from docscan.rectify import perspective_crop
from docscan.scanner import scan_file, scan_image, scan_pages


@pytest.fixture
def page_photo() -> NDArray[np.uint8]:
    """Grey page (360x460) on a dark table, 500x500 photo."""
    img = np.full((500, 500, 4), 40, dtype=np.uint8)
    img[20:480, 70:430, :3] = 190
    img[..., 3] = 255
    return img


def blank(height: int, width: int, value: int = 200) -> NDArray[np.uint8]:
    img = np.full((height, width, 4), value, dtype=np.uint8)
    img[..., 3] = 255
    return img


def test_scan_crops_and_enhances_page(page_photo: NDArray[np.uint8]):
    result = scan_image(page_photo)

    assert result.cropped
    assert result.detection is not None
    assert result.detection.corners is not None
    assert result.detection.confidence > 0.5

    height, width = result.image.shape[:2]
    assert width / height == pytest.approx(360 / 460, rel=0.05)

    unenhanced = perspective_crop(page_photo, result.detection.corners)
    assert luma(result.image).mean() > luma(unenhanced).mean()


def test_scan_keeps_photo_without_document():
    photo = blank(120, 160)
    result = scan_image(photo, settings=None)

    assert not result.cropped
    assert result.detection is not None
    assert result.detection.corners is None
    np.testing.assert_array_equal(result.image, photo)


def test_scan_with_manual_corners(page_photo: NDArray[np.uint8]):
    corners = Quadrilateral.from_points([(100, 50), (300, 50), (100, 450), (300, 450)])
    result = scan_image(page_photo, settings=None, corners=corners)

    assert result.cropped
    assert result.detection is None
    np.testing.assert_array_equal(result.image, page_photo[50:450, 100:300])


def test_scan_auto_crop_disabled(page_photo: NDArray[np.uint8]):
    result = scan_image(page_photo, settings=None, auto_crop=False)
    assert not result.cropped
    assert result.detection is None
    np.testing.assert_array_equal(result.image, page_photo)


def test_scan_confidence_gate(page_photo: NDArray[np.uint8]):
    # Detection still runs but nothing clears a 0.95 gate
    config = ScannerConfig(auto_crop_confidence=0.95)
    result = scan_image(page_photo, settings=None, config=config)
    assert result.detection is not None
    assert result.detection.corners is not None
    assert not result.cropped
    assert result.image.shape == page_photo.shape


def test_scan_rotation_applied_last():
    photo = blank(30, 50)
    result = scan_image(photo, settings=None, auto_crop=False, rotation=90)
    assert result.image.shape == (50, 30, 4)


def test_scan_cancellation(page_photo: NDArray[np.uint8]):
    with pytest.raises(ScanCancelled) as excinfo:
        scan_image(page_photo, should_cancel=lambda: True)
    assert excinfo.value.stage == "edge detection"


def test_scan_cancellation_after_detection(page_photo: NDArray[np.uint8]):
    calls = iter([False, False, True])
    with pytest.raises(ScanCancelled):
        scan_image(page_photo, should_cancel=lambda: next(calls))


def test_scan_pages_combines_vertically():
    pages = [blank(40, 60), blank(30, 80, value=100)]
    config = ScannerConfig(page_gap=5)

    combined, results = scan_pages(pages, config=config, settings=None, auto_crop=False)

    assert len(results) == 2
    assert combined.shape == (40 + 5 + 30, 80, 4)
    assert np.all(combined[40:45] == 255)
    assert np.all(combined[45:, :, :3] == 100)


def test_scan_pages_empty_raises():
    with pytest.raises(ValueError):
        scan_pages([])


def test_scan_file(tmp_path: Path):
    photo = blank(20, 30, value=90)
    photo[5:10, 5:10, :3] = 10
    path = tmp_path / "page.png"
    save_image(photo, str(path))

    result = scan_file(str(path), settings=None, auto_crop=False)

    np.testing.assert_array_equal(result.image, photo)


def test_scan_file_not_found():
    with pytest.raises(FileNotFoundError):
        scan_file("nonexistent_page.jpg")
