"""
Setup Verification Script
==========================
Quick smoke-test that checks whether every required dependency is
importable and the Tesseract binary (with language data) is installed.

Run after setting up the virtual environment:
    python scripts/verify_setup.py

Exit codes:
    0  -- all checks passed
    1  -- one or more checks failed
"""

import importlib
import logging
import shutil
import subprocess
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ocr_search.config import load_settings, resolve_base_dir, worker_languages  # noqa: E402
from ocr_search.ocr.tesseract_engine import tesseract_languages  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

# (module_name, display_name, required)
REQUIRED_PACKAGES = [
    ("yaml", "PyYAML", True),
    ("tqdm", "tqdm", True),
    ("PIL", "Pillow", True),
    ("pytesseract", "pytesseract", True),
    ("numpy", "NumPy", False),   # preprocessing only
    ("cv2", "OpenCV", False),    # preprocessing only
]


def check_python_version() -> bool:
    """Verify Python >= 3.9."""
    v = sys.version_info
    ok = v >= (3, 9)
    logger.info(
        "Python %d.%d.%d %s",
        v.major, v.minor, v.micro,
        "(OK)" if ok else "(FAIL: need >= 3.9)",
    )
    return ok


def check_package(module: str, display: str, required: bool) -> bool:
    """Try to import a package and report its version if available."""
    try:
        mod = importlib.import_module(module)
        version = getattr(mod, "__version__", "unknown")
        logger.info("  %-30s  %s", display, version)
        return True
    except ImportError:
        tag = "MISSING (required)" if required else "MISSING (optional)"
        logger.warning("  %-30s  %s", display, tag)
        return not required  # optional packages don't cause failure


def check_tesseract_binary(languages) -> bool:
    """Verify the tesseract binary is on PATH and has the language data."""
    if not shutil.which("tesseract"):
        logger.warning(
            "  %-30s  NOT FOUND (install: sudo apt install tesseract-ocr)",
            "Tesseract binary",
        )
        return False
    try:
        version = subprocess.run(
            ["tesseract", "--version"], capture_output=True, text=True, timeout=5,
        ).stdout.split("\n")[0]
        listed = subprocess.run(
            ["tesseract", "--list-langs"], capture_output=True, text=True, timeout=5,
        ).stdout.split()
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.warning("  %-30s  FAILED (%s)", "Tesseract binary", exc)
        return False
    logger.info("  %-30s  %s", "Tesseract binary", version)

    missing = [code for code in tesseract_languages(languages).split("+") if code not in listed]
    if missing:
        logger.warning("  %-30s  MISSING: %s", "Language data", ", ".join(missing))
        return False
    logger.info("  %-30s  %s", "Language data", ", ".join(languages))
    return True


def check_base_dir(settings: dict) -> bool:
    """Verify the scanned directory exists."""
    base = resolve_base_dir(settings)
    if not base.is_dir():
        logger.warning("  %-30s  NOT FOUND (%s)", "Base directory", base)
        return False
    logger.info("  %-30s  %s", "Base directory", base)
    return True


def main() -> None:
    logger.info("=" * 60)
    logger.info("Image Text Search -- Setup Verification")
    logger.info("=" * 60)

    settings = load_settings()
    all_ok = True

    logger.info("\n[1/4] Python version")
    all_ok &= check_python_version()

    logger.info("\n[2/4] Python packages")
    for module, display, required in REQUIRED_PACKAGES:
        all_ok &= check_package(module, display, required)

    logger.info("\n[3/4] Tesseract OCR binary")
    all_ok &= check_tesseract_binary(worker_languages(settings))

    logger.info("\n[4/4] Base directory")
    check_base_dir(settings)  # advisory only -- BASE_DIR may be set per run

    logger.info("\n" + "=" * 60)
    if all_ok:
        logger.info("All required checks PASSED.")
    else:
        logger.error("Some checks FAILED.  Fix the issues above and re-run.")
    logger.info("=" * 60)

    sys.exit(0 if all_ok else 1)


if __name__ == "__main__":
    main()
