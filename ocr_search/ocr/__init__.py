"""
OCR subpackage -- text recognition for images.

    RecognitionClient  -- parent-side API over the worker process
    TesseractEngine    -- the recogniser running inside the worker
"""

from ocr_search.ocr.client import RecognitionClient, RecognizedText
