"""
Scanner configuration.

Defaults match the tuning of the detection pipeline. Every field can be
overridden through a DOCSCAN_* environment variable (a .env file is loaded
by the CLI), e.g. DOCSCAN_MAX_DETECTION_SIZE=1024.
"""

import os
from dataclasses import dataclass, fields


@dataclass(frozen=True)
class ScannerConfig:
    """Tunable parameters of the scan pipeline."""

    # Detection runs on a copy whose longest side is capped at this size
    max_detection_size: int = 800
    canny_low: float = 30.0
    canny_high: float = 100.0
    # Detections at or below this confidence are not auto-cropped
    auto_crop_confidence: float = 0.5
    jpeg_quality: int = 92
    page_gap: int = 20
    ocr_language: str = "eng"

    def __post_init__(self) -> None:
        if self.max_detection_size < 3:
            raise ValueError("max_detection_size must be at least 3")
        if self.canny_low > self.canny_high:
            raise ValueError("canny_low must not exceed canny_high")
        if not 0.0 <= self.auto_crop_confidence <= 1.0:
            raise ValueError("auto_crop_confidence must be in [0, 1]")
        if not 0 <= self.jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be in [0, 100]")
        if self.page_gap < 0:
            raise ValueError("page_gap must not be negative")

    @classmethod
    def from_env(cls, prefix: str = "DOCSCAN_") -> "ScannerConfig":
        """
        Build a config from environment variables.

        Args:
            prefix: Prefix of the variable names (field name upper-cased)

        Returns:
            ScannerConfig with overrides applied

        Raises:
            ValueError: If a variable can't be converted to the field's type
        """
        overrides: dict[str, int | float | str] = {}

        for field in fields(cls):
            raw: str | None = os.getenv(prefix + field.name.upper())
            if raw is None or not raw.strip():
                continue

            default = field.default
            try:
                if isinstance(default, int):
                    overrides[field.name] = int(raw)
                elif isinstance(default, float):
                    overrides[field.name] = float(raw)
                else:
                    overrides[field.name] = raw.strip()
            except ValueError as e:
                raise ValueError(
                    f"Invalid value for {prefix + field.name.upper()}: {raw!r}"
                ) from e

        return cls(**overrides)  # type: ignore[arg-type]
