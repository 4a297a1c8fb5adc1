"""
Image Text Search -- root package.

This package contains the whole pipeline:
    ingestion -> find images under _images folders, index their text
    worker    -> the recognition worker process and the channel to it
    ocr       -> recognition client (parent side), Tesseract engine (worker side)
    index     -> per-image word sets and JSON persistence
    query     -> boolean word search (&, |, !, parentheses)
"""

__version__ = "0.1.0"
