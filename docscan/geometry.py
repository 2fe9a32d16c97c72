"""
Document boundary detection.

Finds the four corners of a page in a Canny edge map: a Hough transform
yields candidate lines, near-horizontal and near-vertical candidates are
intersected, and the extreme intersections become the corners. When the line
evidence is inconclusive, a contour-sampling fallback picks extreme edge
points per image quadrant.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional

import numpy as np
from numpy.typing import NDArray

from .config import ScannerConfig
from .edges import canny_edges
from .exceptions import ScanCancelled
from .imaging import Raster, ensure_rgba, resize_to_fit

logger = logging.getLogger(__name__)

# Edge map values that count as evidence
HOUGH_EDGE_VALUE = 200
CONTOUR_EDGE_VALUE = 100

CONTOUR_STRIDE = 3
MIN_CONTOUR_POINTS = 100

# Points processed per accumulator update, bounds memory to chunk * theta_steps
_VOTE_CHUNK = 8192


@dataclass(frozen=True, slots=True)
class Point:
    """Sub-pixel image coordinate."""
    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        """Euclidean distance to another point."""
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True, slots=True)
class Quadrilateral:
    """Document region in source image coordinates.

    No shape constraint is enforced; how plausible the region is gets
    expressed by the confidence scorers.
    """
    top_left: Point
    top_right: Point
    bottom_left: Point
    bottom_right: Point

    @classmethod
    def from_points(cls, points: list[tuple[float, float]]) -> Quadrilateral:
        """Build from [(x, y)] in the order TL, TR, BL, BR."""
        if len(points) != 4:
            raise ValueError(f"Expected 4 points, got {len(points)}")
        tl, tr, bl, br = (Point(float(x), float(y)) for x, y in points)
        return cls(tl, tr, bl, br)

    def scaled(self, scale_x: float, scale_y: float) -> Quadrilateral:
        """Multiply every coordinate by per-axis factors."""
        return Quadrilateral(*(
            Point(p.x * scale_x, p.y * scale_y)
            for p in (self.top_left, self.top_right, self.bottom_left, self.bottom_right)
        ))

    def polygon(self) -> list[Point]:
        """Corners in drawing order: TL, TR, BR, BL."""
        return [self.top_left, self.top_right, self.bottom_right, self.bottom_left]


class HoughLine(NamedTuple):
    """Line in polar form: x*cos(theta) + y*sin(theta) = rho."""
    rho: float
    theta: float
    votes: int


@dataclass
class DetectionResult:
    """Outcome of one detection call.

    Attributes:
        corners: Detected region in source coordinates, or None
        confidence: Score in [0, 1]; 0 when nothing was found
        edge_image: Edge map of the downscaled detection copy, for diagnostics
    """
    corners: Optional[Quadrilateral]
    confidence: float
    edge_image: Optional[Raster] = None


# ============================================================================
# Hough transform
# ============================================================================

def hough_transform(edge_image: Raster,
                    theta_steps: int = 180,
                    vote_ratio: float = 0.3,
                    max_lines: int = 20) -> list[HoughLine]:
    """
    Detect straight lines in an edge map.

    Every pixel whose edge value exceeds 200 votes once per theta bucket for
    rho = round(x*cos(theta) + y*sin(theta)). Cells with more than
    vote_ratio * max(width, height) votes become candidates.

    Args:
        edge_image: Edge map (see edges.canny_edges)
        theta_steps: Number of theta buckets over [0, pi)
        vote_ratio: Vote threshold relative to the longest image side
        max_lines: Number of candidates kept

    Returns:
        Candidate lines sorted by votes, strongest first. Equal votes keep
        accumulator order (rho, then theta).
    """
    height, width = edge_image.shape[:2]
    rho_max = math.ceil(math.hypot(width, height))
    rho_rows = 2 * rho_max + 1

    thetas = np.arange(theta_steps, dtype=np.float64) * np.pi / theta_steps
    cos_table = np.cos(thetas)
    sin_table = np.sin(thetas)
    theta_index = np.arange(theta_steps, dtype=np.int64)

    ys, xs = np.nonzero(edge_image[..., 0] > HOUGH_EDGE_VALUE)
    accumulator = np.zeros(rho_rows * theta_steps, dtype=np.int64)

    for start in range(0, len(xs), _VOTE_CHUNK):
        x = xs[start:start + _VOTE_CHUNK, None].astype(np.float64)
        y = ys[start:start + _VOTE_CHUNK, None].astype(np.float64)
        rho = np.floor(x * cos_table + y * sin_table + 0.5).astype(np.int64) + rho_max
        cells = (rho * theta_steps + theta_index).ravel()
        accumulator += np.bincount(cells, minlength=accumulator.size)

    votes_grid = accumulator.reshape(rho_rows, theta_steps)
    threshold = max(width, height) * vote_ratio

    rho_idx, theta_idx = np.nonzero(votes_grid > threshold)
    votes = votes_grid[rho_idx, theta_idx]
    order = np.argsort(-votes, kind="stable")[:max_lines]

    return [
        HoughLine(
            rho=float(rho_idx[i] - rho_max),
            theta=float(theta_idx[i] * np.pi / theta_steps),
            votes=int(votes[i]),
        )
        for i in order
    ]


def classify_lines(lines: list[HoughLine]) -> tuple[list[HoughLine], list[HoughLine]]:
    """
    Split candidate lines by orientation of their normal.

    Returns:
        Tuple of (vertical, horizontal): theta in (70, 110) degrees and theta
        below 20 or above 160 degrees respectively. Other lines are dropped.
    """
    vertical: list[HoughLine] = []
    horizontal: list[HoughLine] = []

    for line in lines:
        degrees = math.degrees(line.theta)
        if 70 < degrees < 110:
            vertical.append(line)
        elif degrees < 20 or degrees > 160:
            horizontal.append(line)

    return vertical, horizontal


def line_intersection(l1: HoughLine, l2: HoughLine) -> Optional[Point]:
    """Solve the 2x2 system of two polar lines; None for near-parallel lines."""
    cos1, sin1 = math.cos(l1.theta), math.sin(l1.theta)
    cos2, sin2 = math.cos(l2.theta), math.sin(l2.theta)

    det = cos1 * sin2 - cos2 * sin1
    if abs(det) < 0.001:
        return None

    x = (l1.rho * sin2 - l2.rho * sin1) / det
    y = (l2.rho * cos1 - l1.rho * cos2) / det

    return Point(x, y)


def select_extreme_corners(points: list[Point]) -> Quadrilateral:
    """
    Choose four corners from a cloud of candidate points.

    Points are ordered by angle around their centroid, then the extremes of
    x+y (top-left min, bottom-right max), x-y (top-right) and y-x
    (bottom-left) are taken. Ties keep the earliest point in that order.
    """
    cx = sum(p.x for p in points) / len(points)
    cy = sum(p.y for p in points) / len(points)
    ordered = sorted(points, key=lambda p: math.atan2(p.y - cy, p.x - cx))

    top_left = top_right = bottom_left = bottom_right = ordered[0]

    for p in ordered:
        if p.x + p.y < top_left.x + top_left.y:
            top_left = p
        if p.x - p.y > top_right.x - top_right.y:
            top_right = p
        if p.y - p.x > bottom_left.y - bottom_left.x:
            bottom_left = p
        if p.x + p.y > bottom_right.x + bottom_right.y:
            bottom_right = p

    return Quadrilateral(top_left, top_right, bottom_left, bottom_right)


def find_corners(lines: list[HoughLine], width: int, height: int) -> Optional[Quadrilateral]:
    """
    Turn candidate lines into document corners.

    The top four lines of each orientation are intersected pairwise.
    Intersections more than 10% outside the image are discarded.

    Args:
        lines: Candidates from hough_transform
        width: Edge map width
        height: Edge map height

    Returns:
        Quadrilateral, or None if there are fewer than 4 lines, fewer than 2
        of either orientation, or fewer than 4 usable intersections
    """
    if len(lines) < 4:
        return None

    vertical, horizontal = classify_lines(lines)

    if len(horizontal) < 2 or len(vertical) < 2:
        return None

    x_min, x_max = -width * 0.1, width * 1.1
    y_min, y_max = -height * 0.1, height * 1.1

    intersections: list[Point] = []
    for h_line in horizontal[:4]:
        for v_line in vertical[:4]:
            point = line_intersection(h_line, v_line)
            if point is None:
                continue
            if x_min <= point.x <= x_max and y_min <= point.y <= y_max:
                intersections.append(point)

    if len(intersections) < 4:
        return None

    return select_extreme_corners(intersections)


def find_document_corners(edge_image: Raster) -> Optional[Quadrilateral]:
    """Hough-based corner detection on an edge map; None if inconclusive."""
    height, width = edge_image.shape[:2]
    lines = hough_transform(edge_image)
    logger.debug("Hough transform found %d candidate lines", len(lines))
    return find_corners(lines, width, height)


# ============================================================================
# Contour fallback
# ============================================================================

def find_document_contour(edge_image: Raster) -> Optional[Quadrilateral]:
    """
    Corner detection from sampled edge points.

    Edge pixels (value > 100) are sampled on a stride-3 grid. Within each
    image quadrant (split at 40% / 60% of width and height) the extreme point
    by the x+y / x-y criteria becomes the corner. If a quadrant is empty, the
    bounding box of all samples is used instead, pulled in by a margin of 10%
    of the shorter image side.

    The quadrant split assumes the document roughly fills the frame.

    Args:
        edge_image: Edge map

    Returns:
        Quadrilateral, or None with fewer than 100 sampled edge points
    """
    height, width = edge_image.shape[:2]

    grid = edge_image[::CONTOUR_STRIDE, ::CONTOUR_STRIDE, 0] > CONTOUR_EDGE_VALUE
    rows, cols = np.nonzero(grid)

    if len(rows) < MIN_CONTOUR_POINTS:
        return None

    xs = cols.astype(np.float64) * CONTOUR_STRIDE
    ys = rows.astype(np.float64) * CONTOUR_STRIDE

    left = xs < width * 0.4
    right = xs > width * 0.6
    top = ys < height * 0.4
    bottom = ys > height * 0.6

    quadrants = [left & top, right & top, left & bottom, right & bottom]

    if not all(q.any() for q in quadrants):
        margin = min(width, height) * 0.1
        min_x, max_x = xs.min(), xs.max()
        min_y, max_y = ys.min(), ys.max()
        x0, x1 = max(margin, min_x), min(width - margin, max_x)
        y0, y1 = max(margin, min_y), min(height - margin, max_y)
        return Quadrilateral(
            top_left=Point(float(x0), float(y0)),
            top_right=Point(float(x1), float(y0)),
            bottom_left=Point(float(x0), float(y1)),
            bottom_right=Point(float(x1), float(y1)),
        )

    def extreme(mask: NDArray[np.bool_], score: NDArray[np.float64], largest: bool) -> Point:
        candidates = np.flatnonzero(mask)
        values = score[candidates]
        i = candidates[np.argmax(values) if largest else np.argmin(values)]
        return Point(float(xs[i]), float(ys[i]))

    return Quadrilateral(
        top_left=extreme(quadrants[0], xs + ys, largest=False),
        top_right=extreme(quadrants[1], xs - ys, largest=True),
        bottom_left=extreme(quadrants[2], ys - xs, largest=True),
        bottom_right=extreme(quadrants[3], xs + ys, largest=True),
    )


# ============================================================================
# Scoring
# ============================================================================

def quad_area(quad: Quadrilateral) -> float:
    """Area of the quadrilateral (shoelace formula over TL, TR, BR, BL)."""
    points = quad.polygon()
    total = 0.0
    for p, q in zip(points, points[1:] + points[:1]):
        total += p.x * q.y - q.x * p.y
    return abs(total) / 2


def detection_confidence(quad: Quadrilateral, width: int, height: int) -> float:
    """
    Area-based confidence used by detect_document_edges.

    A region covering between 10% and 95% of the image scores
    min(0.9, 1.5 * area ratio); anything else scores 0.3.
    """
    ratio = quad_area(quad) / (width * height)
    if 0.1 < ratio < 0.95:
        return min(0.9, ratio * 1.5)
    return 0.3


def _interior_angle(p1: Point, vertex: Point, p3: Point) -> float:
    v1x, v1y = p1.x - vertex.x, p1.y - vertex.y
    v2x, v2y = p3.x - vertex.x, p3.y - vertex.y
    norm = math.hypot(v1x, v1y) * math.hypot(v2x, v2y)
    if norm == 0:
        # Coincident corners have no angle; score as the worst case
        return 0.0
    cosine = max(-1.0, min(1.0, (v1x * v2x + v1y * v2y) / norm))
    return math.degrees(math.acos(cosine))


def calculate_confidence(quad: Quadrilateral, image_width: int, image_height: int) -> float:
    """
    Stricter confidence: area coverage blended with rectangularity.

    Regions covering less than 10% or more than 95% of the image score 0.2.
    Otherwise the score is 0.5 * area ratio + 0.5 * angle score, where the
    angle score is max(0, 1 - mean |interior angle - 90| / 45), capped at
    0.95.

    Returns:
        Confidence in [0, 0.95]
    """
    ratio = quad_area(quad) / (image_width * image_height)

    if ratio < 0.1 or ratio > 0.95:
        return 0.2

    tl, tr, bl, br = quad.top_left, quad.top_right, quad.bottom_left, quad.bottom_right
    angles = [
        _interior_angle(bl, tl, tr),
        _interior_angle(tl, tr, br),
        _interior_angle(tr, br, bl),
        _interior_angle(br, bl, tl),
    ]

    deviation = sum(abs(a - 90) for a in angles) / 4
    angle_score = max(0.0, 1 - deviation / 45)

    return min(0.95, ratio * 0.5 + angle_score * 0.5)


# ============================================================================
# Detection entry point
# ============================================================================

def detect_document_edges(image: Raster,
                          config: Optional[ScannerConfig] = None,
                          should_cancel: Optional[Callable[[], bool]] = None) -> DetectionResult:
    """
    Detect the document region in a photo.

    Detection runs on a copy downscaled to config.max_detection_size; the
    returned corners are in the coordinates of the original image. Finding
    nothing is not an error: the result then has corners None and
    confidence 0.

    Args:
        image: RGBA raster (any size)
        config: Detection parameters (defaults to ScannerConfig())
        should_cancel: Optional check, polled between edge detection and
            line detection

    Returns:
        DetectionResult

    Raises:
        ScanCancelled: If should_cancel returns True
    """
    config = config or ScannerConfig()
    image = ensure_rgba(image)

    small, scale_x, scale_y = resize_to_fit(image, config.max_detection_size)
    height, width = small.shape[:2]

    edge_image = canny_edges(small, config.canny_low, config.canny_high)

    if should_cancel is not None and should_cancel():
        raise ScanCancelled("line detection")

    corners = find_document_corners(edge_image)
    if corners is None:
        logger.debug("Line detection inconclusive, trying contour fallback")
        corners = find_document_contour(edge_image)

    if corners is None:
        logger.info("No document region detected (%dx%d)", width, height)
        return DetectionResult(corners=None, confidence=0.0, edge_image=edge_image)

    confidence = detection_confidence(corners, width, height)
    logger.debug("Document region detected with confidence %.2f", confidence)

    return DetectionResult(
        corners=corners.scaled(scale_x, scale_y),
        confidence=confidence,
        edge_image=edge_image,
    )
