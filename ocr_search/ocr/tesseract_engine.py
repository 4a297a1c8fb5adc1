"""
Tesseract OCR Engine
=====================
Text recogniser used inside the worker process.  Wraps Tesseract via the
pytesseract Python binding and returns word-level regions in the shape the
worker protocol sends back::

    {"text": "dough", "confidence": 0.91,
     "bbox": [[x0, y0], [x1, y0], [x1, y1], [x0, y1]]}

Prerequisites:
    1. System package:   sudo apt install tesseract-ocr tesseract-ocr-fra
    2. Python binding:   pip install pytesseract pillow

Design notes:
    - Callers speak ISO 639-1 codes (``en``, ``fr``); they are mapped to
      Tesseract's three-letter codes and joined with ``+``.  Unknown codes
      pass through unchanged so ``deu`` or ``chi_sim`` also work.
    - Images can optionally be preprocessed (grayscale + adaptive threshold)
      when OpenCV is installed.
    - Failures raise instead of returning empty results: the worker turns
      them into ``status: error`` replies.
"""

import logging
from pathlib import Path
from typing import Dict, List, Sequence

logger = logging.getLogger(__name__)

# Guard imports -- pytesseract and PIL may not be installed yet.
try:
    import pytesseract
    TESSERACT_AVAILABLE = True
except ImportError:
    TESSERACT_AVAILABLE = False

try:
    from PIL import Image
    PIL_AVAILABLE = True
except ImportError:
    PIL_AVAILABLE = False

try:
    import cv2
    import numpy as np
    CV2_AVAILABLE = True
except ImportError:
    CV2_AVAILABLE = False


LANGUAGE_CODES: Dict[str, str] = {
    "en": "eng",
    "fr": "fra",
    "de": "deu",
    "es": "spa",
    "it": "ita",
    "pt": "por",
    "nl": "nld",
    "ru": "rus",
    "ja": "jpn",
    "ko": "kor",
    "zh": "chi_sim",
    "ch_sim": "chi_sim",
    "ch_tra": "chi_tra",
}


def tesseract_languages(languages: Sequence[str]) -> str:
    """``["en", "fr"]`` -> ``"eng+fra"``."""
    codes = [LANGUAGE_CODES.get(lang.lower(), lang) for lang in languages]
    return "+".join(dict.fromkeys(codes))


class TesseractEngine:
    """
    Tesseract-based recogniser for document images.

    Usage::

        engine = TesseractEngine(languages=["en", "fr"])
        regions = engine.read_text("docs/_images/recipe.png")
    """

    def __init__(
        self,
        languages: Sequence[str] = ("en",),
        preprocess: bool = True,
        confidence_threshold: int = 40,
        psm: int = 3,
    ):
        """
        Args:
            languages            : ISO 639-1 or Tesseract language codes.
            preprocess           : Apply adaptive-threshold preprocessing.
            confidence_threshold : Discard words with confidence below this
                                   value (0-100).
            psm                  : Page segmentation mode (0-13). Common:
                                   3 = Fully automatic (default)
                                   6 = Uniform block of text
                                   11 = Sparse text, find as much as possible
        """
        if not TESSERACT_AVAILABLE:
            raise ImportError(
                "pytesseract is required.  Install: pip install pytesseract  "
                "Also install the system binary: sudo apt install tesseract-ocr"
            )
        if not PIL_AVAILABLE:
            raise ImportError("Pillow is required.  Install: pip install pillow")

        self.lang = tesseract_languages(languages)
        self.preprocess = preprocess
        self.confidence_threshold = confidence_threshold
        self.psm = psm
        logger.info(
            "TesseractEngine ready (lang=%s, psm=%d, preprocess=%s)",
            self.lang, self.psm, self.preprocess,
        )

    def check_languages(self) -> None:
        """Raise ``ValueError`` if a requested language pack is not installed."""
        installed = set(pytesseract.get_languages(config=""))
        missing = [code for code in self.lang.split("+") if code not in installed]
        if missing:
            raise ValueError(
                f"Tesseract language data not installed: {', '.join(missing)}"
            )

    def read_text(self, image_path: str) -> List[Dict]:
        """
        Extract words with confidence and corner points.

        Words below the confidence threshold or empty after stripping are
        excluded.  Confidence is scaled to 0..1.
        """
        img = self._load_image(image_path)
        if self.preprocess and CV2_AVAILABLE:
            img = self._preprocess(img)

        config = f"--psm {self.psm}"
        data = pytesseract.image_to_data(
            img, lang=self.lang, config=config, output_type=pytesseract.Output.DICT
        )

        results: List[Dict] = []
        for i in range(len(data["text"])):
            word = data["text"][i].strip()
            conf = float(data["conf"][i])
            if not word or conf < self.confidence_threshold:
                continue
            left, top = data["left"][i], data["top"][i]
            right, bottom = left + data["width"][i], top + data["height"][i]
            results.append({
                "text": word,
                "confidence": round(conf / 100.0, 4),
                "bbox": [[left, top], [right, top], [right, bottom], [left, bottom]],
            })
        logger.info(
            "OCR for %s: %d words (threshold=%d)",
            image_path, len(results), self.confidence_threshold,
        )
        return results

    # ------------------------------------------------------------------ #
    # Internal helpers                                                    #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _load_image(image_path: str) -> "Image.Image":
        p = Path(image_path)
        if not p.is_file():
            raise FileNotFoundError(f"Image not found: {image_path}")
        img = Image.open(p)
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        return img

    @staticmethod
    def _preprocess(img: "Image.Image") -> "Image.Image":
        """
        Adaptive-threshold preprocessing for noisy scans.

        Steps:
            1. Convert to grayscale
            2. Apply Gaussian blur (reduces noise)
            3. Apply adaptive threshold (enhances text / background contrast)
            4. Convert back to PIL Image for pytesseract
        """
        gray = np.array(img.convert("L"))
        blurred = cv2.GaussianBlur(gray, (3, 3), 0)
        binary = cv2.adaptiveThreshold(
            blurred, 255,
            cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv2.THRESH_BINARY,
            blockSize=11,
            C=2,
        )
        return Image.fromarray(binary)
