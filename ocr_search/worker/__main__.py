"""
Worker entry point:  python -m ocr_search.worker

Replies go to a reserved copy of stdout; anything else printed lands on
stderr (see ``ocr_search.worker.server.run``).

OCR tuning comes from the environment the ``WorkerChannel`` builds:
    OCR_SEARCH_PREPROCESS            -- "1"/"0" (default 1)
    OCR_SEARCH_CONFIDENCE_THRESHOLD  -- 0-100 (default 40)
    OCR_SEARCH_PSM                   -- Tesseract page segmentation mode (default 3)
"""

import logging
import os
import sys
from typing import Sequence

from ocr_search.ocr.tesseract_engine import TesseractEngine
from ocr_search.worker.server import run


def build_engine(languages: Sequence[str]) -> TesseractEngine:
    engine = TesseractEngine(
        languages=languages,
        preprocess=os.environ.get("OCR_SEARCH_PREPROCESS", "1") != "0",
        confidence_threshold=int(os.environ.get("OCR_SEARCH_CONFIDENCE_THRESHOLD", "40")),
        psm=int(os.environ.get("OCR_SEARCH_PSM", "3")),
    )
    engine.check_languages()
    return engine


def main() -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if os.environ.get("OCR_SEARCH_DEBUG") else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    run(build_engine)


if __name__ == "__main__":
    main()
