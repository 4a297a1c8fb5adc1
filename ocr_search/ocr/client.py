"""
Recognition Client
===================
Typed façade over the ``WorkerChannel``.

    client = RecognitionClient(WorkerChannel(config))
    client.initialize(["en", "fr"])
    for item in client.recognize("/data/docs/_images/page.png"):
        print(item.text, item.confidence)
    client.shutdown()

Design notes:
  - ``initialize`` must be called once before ``recognize``.  Calling
    ``recognize`` first is a contract violation: it is logged and the
    command is still sent, so the result depends on the worker.
  - Worker ``status: error`` replies become ``InitializationError`` /
    ``RecognitionError``.  Channel failures (``StartupError``,
    ``WorkerExited``, ``ProtocolError``, ``WorkerTimeout``) pass through.
  - No retries happen here; a failed image is the caller's to skip or retry.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ocr_search.errors import InitializationError, ProtocolError, RecognitionError
from ocr_search.worker.channel import WorkerChannel

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


@dataclass(frozen=True)
class RecognizedText:
    """
    One text region found in an image.

    Attributes:
        text       : recognised string
        confidence : 0.0 - 1.0
        region     : polygon corners as (x, y) points, clockwise from top-left
    """
    text: str
    confidence: float
    region: Tuple[Point, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "bbox": [list(p) for p in self.region],
        }


class RecognitionClient:
    """Err-checked API over the worker protocol (``init`` / ``read_text`` / ``close``)."""

    def __init__(self, channel: Optional[WorkerChannel] = None):
        self.channel = channel or WorkerChannel()
        self.languages: List[str] = []
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, languages: Sequence[str]) -> None:
        """Load the recogniser for *languages* (e.g. ``["en", "fr"]``)."""
        languages = [str(lang) for lang in languages]
        if not languages:
            raise ValueError("At least one language code is required")
        if self._initialized:
            logger.warning("Recognition client already initialised; re-sending init")

        result = self.channel.send("init", languages)
        if result.get("status") != "success":
            raise InitializationError(
                result.get("message") or "Failed to initialise the recognition worker"
            )
        self.languages = languages
        self._initialized = True
        logger.info("Recognition worker initialised (languages=%s)", ",".join(languages))

    def recognize(self, path: Union[str, Path]) -> List[RecognizedText]:
        """
        Recognise text in one image.

        Returns:
            Ordered list of ``RecognizedText``; empty when the image has no text.
        """
        if not self._initialized:
            logger.warning("recognize() called before initialize(); results are undefined")

        result = self.channel.send("read_text", [str(path)])
        if result.get("status") != "success" or "data" not in result:
            raise RecognitionError(
                result.get("message") or f"Failed to read text from image: {path}"
            )

        data = result["data"]
        if not isinstance(data, list):
            raise ProtocolError("read_text data is not a list", raw=repr(data)[:200])
        items = [_parse_item(entry) for entry in data]
        logger.debug("Recognised %d text regions in %s", len(items), path)
        return items

    def shutdown(self) -> None:
        """Stop the worker process."""
        self.channel.close()
        self._initialized = False

    def __enter__(self) -> "RecognitionClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


def _parse_item(entry: Any) -> RecognizedText:
    """
    Accept either ``{"text", "confidence", "bbox"}`` objects or
    ``[region, text, confidence]`` triples.
    """
    try:
        if isinstance(entry, dict):
            text = entry["text"]
            confidence = entry.get("confidence", entry.get("conf", 0.0))
            region = entry.get("bbox", entry.get("region")) or []
        elif isinstance(entry, (list, tuple)) and len(entry) == 3:
            region, text, confidence = entry
        else:
            raise TypeError(f"unexpected entry type {type(entry).__name__}")
        points = tuple((float(p[0]), float(p[1])) for p in region)
        return RecognizedText(text=str(text), confidence=float(confidence), region=points)
    except (KeyError, TypeError, ValueError, IndexError) as exc:
        raise ProtocolError(f"Malformed recognition entry: {exc}", raw=repr(entry)[:200]) from exc
