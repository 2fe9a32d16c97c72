"""
Document scanner package.

This package turns photographed pages into clean document images: edge
detection, document boundary detection, perspective rectification and
enhancement, with an OCR hand-off for the result.
"""

__version__ = "0.1.0"
