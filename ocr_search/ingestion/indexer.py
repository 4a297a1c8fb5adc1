"""
Image Indexer
==============
Runs recognition over a list of images and builds the ``DocumentIndex``.

Images are processed sequentially through one ``RecognitionClient``: the
worker handles one image at a time anyway.

Failure policy:
    - ``RecognitionError`` / ``ProtocolError`` for one image: logged, image
      skipped, indexing continues.
    - Images without any recognised text produce no document.
    - Channel failures (``StartupError``, ``WorkerExited``,
      ``WorkerTimeout``) stop the run and propagate to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from tqdm import tqdm

from ocr_search.errors import ProtocolError, RecognitionError
from ocr_search.index.document_index import Document, DocumentIndex
from ocr_search.ocr.client import RecognitionClient

logger = logging.getLogger(__name__)


@dataclass
class IndexingReport:
    """Counters for one indexing run."""
    processed: int = 0
    indexed: int = 0
    empty: int = 0
    failed: List[str] = field(default_factory=list)


def index_images(
    client: RecognitionClient,
    image_paths: Sequence[str],
    index: Optional[DocumentIndex] = None,
    progress: bool = True,
    report: Optional[IndexingReport] = None,
) -> DocumentIndex:
    """
    Recognise every image in *image_paths* and add a document per image.

    Args:
        client      : an initialised ``RecognitionClient``.
        image_paths : images to process, in order.
        index       : index to extend (a new one by default).
        progress    : show a tqdm progress bar.
        report      : optional counters filled in during the run.
    """
    index = index if index is not None else DocumentIndex()
    report = report if report is not None else IndexingReport()

    iterator: Iterable[str] = image_paths
    if progress:
        iterator = tqdm(image_paths, desc="OCR", unit="img")

    for image_path in iterator:
        logger.debug("Processing image: %s", image_path)
        report.processed += 1
        try:
            items = client.recognize(image_path)
        except (RecognitionError, ProtocolError) as exc:
            logger.error("Error processing image %s: %s", image_path, exc)
            report.failed.append(image_path)
            continue

        document = Document.from_recognition(image_path, items)
        if document is None:
            logger.info("No text found in %s", image_path)
            report.empty += 1
            continue
        index.add(document)
        report.indexed += 1

    logger.info(
        "Indexed %d of %d images (%d without text, %d failed)",
        report.indexed, report.processed, report.empty, len(report.failed),
    )
    return index
