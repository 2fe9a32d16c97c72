#!/usr/bin/env python3
"""
Entry point for the Document Scanner CLI.

Usage:
    python main.py photo.jpg                         # Detect, crop and enhance
    python main.py page1.jpg page2.jpg -o scan.jpg   # Multi-page scan
    python main.py photo.jpg --preset bw --ocr tesseract
"""

from docscan.cli import main

if __name__ == "__main__":
    main()
