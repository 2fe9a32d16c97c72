from abc import ABC, abstractmethod

import numpy as np
import pytesseract  # type: ignore[import]
from PIL import Image
from mistralai import Mistral

from .imaging import Raster, ensure_rgba, flatten_on_white, to_data_url


# Typed wrappers for pytesseract functions to satisfy type checker
def _image_to_string(image: Image.Image, lang: str, config: str) -> str:
    """Typed wrapper for pytesseract.image_to_string."""
    result = pytesseract.image_to_string(image, lang=lang, config=config)  # type: ignore[attr-defined]
    if isinstance(result, str):
        return result
    return str(result)  # type: ignore[arg-type]


def _image_to_data(image: Image.Image, lang: str, config: str, output_type: int) -> dict[str, list[str | int]]:
    """Typed wrapper for pytesseract.image_to_data."""
    result = pytesseract.image_to_data(image, lang=lang, config=config, output_type=output_type)  # type: ignore[attr-defined]
    if isinstance(result, dict):
        return result  # type: ignore[return-value]
    return dict(result)  # type: ignore[arg-type]


_OUTPUT_DICT: int = getattr(getattr(pytesseract, 'Output'), 'DICT')


def raster_to_pil(image: Raster) -> Image.Image:
    """Convert an RGBA raster to an RGB PIL image (alpha flattened onto white)."""
    flat = flatten_on_white(ensure_rgba(image))
    return Image.fromarray(np.ascontiguousarray(flat[..., :3]))


class OCREngine(ABC):
    """Abstract base class for OCR engines fed with scanned pages."""

    @abstractmethod
    def extract_text(self, image: Raster) -> str:
        """
        Extract text from a scanned page.

        Args:
            image: RGBA raster, typically the output of the scan pipeline

        Returns:
            Extracted text as string
        """
        pass

    @abstractmethod
    def extract_text_with_confidence(self, image: Raster) -> tuple[str, float]:
        """
        Extract text with confidence score.

        Returns:
            Tuple of (text, confidence_score) where confidence is 0-100
        """
        pass


class TesseractOCR(OCREngine):
    """Tesseract OCR implementation."""

    def __init__(self,
                 language: str = "eng",
                 config: str = "",
                 tesseract_cmd: str | None = None):
        """
        Initialize Tesseract OCR.

        Args:
            language: Tesseract language code (default: "eng")
            config: Custom Tesseract config string (e.g., "--psm 6")
            tesseract_cmd: Path to tesseract executable (None = use default)
        """
        self.language = language
        self.config = config

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def extract_text(self, image: Raster) -> str:
        """Extract text using Tesseract."""
        text: str = _image_to_string(raster_to_pil(image), self.language, self.config)
        return text.strip()

    def extract_text_with_confidence(self, image: Raster) -> tuple[str, float]:
        """Extract text with the mean word confidence reported by Tesseract."""
        data: dict[str, list[str | int]] = _image_to_data(
            raster_to_pil(image),
            self.language,
            self.config,
            _OUTPUT_DICT
        )

        texts: list[str] = []
        confidences: list[float] = []

        for conf, text_item in zip(data['conf'], data['text']):
            conf_value = float(conf)
            text_str = str(text_item)

            # -1 means no text detected
            if conf_value != -1 and text_str.strip():
                texts.append(text_str)
                confidences.append(conf_value)

        full_text: str = ' '.join(texts)
        avg_confidence: float = float(np.mean(confidences)) if confidences else 0.0

        return full_text.strip(), avg_confidence


class MistralOCR(OCREngine):
    """
    Mistral OCR implementation.

    Sends the page as a PNG data URL to the Mistral OCR API. Better for
    handwriting and complex layouts, but needs an API key.
    """

    def __init__(self, api_key: str, model: str = "mistral-ocr-latest"):
        """
        Initialize Mistral OCR.

        Args:
            api_key: Mistral API key
            model: Mistral OCR model to use (default: mistral-ocr-latest)
        """
        self.api_key = api_key
        self.model = model
        self.client = Mistral(api_key=api_key)

    def extract_text(self, image: Raster) -> str:
        """Extract text using the Mistral OCR API."""
        ocr_response = self.client.ocr.process(
            model=self.model,
            document={
                "type": "image_url",
                "image_url": to_data_url(image, fmt="png"),
            }
        )

        pages = getattr(ocr_response, 'pages', None)
        if pages:
            markdown = getattr(pages[0], 'markdown', None)
            if markdown:
                return str(markdown).strip()

        return ""

    def extract_text_with_confidence(self, image: Raster) -> tuple[str, float]:
        """Mistral reports no confidence: 100 if text was found, 0 otherwise."""
        text = self.extract_text(image)
        return text, 100.0 if text else 0.0


def create_ocr_engine(name: str, language: str = "eng", api_key: str | None = None) -> OCREngine:
    """
    Build an OCR engine by name.

    Args:
        name: "tesseract" or "mistral"
        language: Tesseract language code
        api_key: Mistral API key (required for "mistral")

    Raises:
        ValueError: For an unknown engine or a missing API key
    """
    if name == "tesseract":
        return TesseractOCR(language=language)
    elif name == "mistral":
        if not api_key:
            raise ValueError("MISTRAL_API_KEY is required for Mistral OCR")
        return MistralOCR(api_key=api_key)
    else:
        raise ValueError(f"Unknown OCR engine: {name}")
