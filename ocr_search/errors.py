"""
Error Taxonomy
===============
Every failure the core can report to its caller.

Hierarchy::

    OcrSearchError
    ├── WorkerError              -- problems talking to the worker process
    │   ├── StartupError         -- worker could not be launched
    │   ├── WorkerExited         -- worker died with requests pending
    │   ├── ProtocolError        -- response was not the expected JSON shape
    │   └── WorkerTimeout        -- no response within the request timeout
    ├── InitializationError      -- worker answered ``init`` with an error
    ├── RecognitionError         -- worker answered ``read_text`` with an error
    └── QuerySyntaxError         -- search expression does not parse

Design notes:
    - ``WorkerTimeout`` also derives from the built-in ``TimeoutError`` and
      ``QuerySyntaxError`` from ``ValueError`` so callers that only know the
      built-in types can still catch them.
    - Nothing in the core retries.  Retry policy belongs to the orchestrator.
"""

from typing import Optional


class OcrSearchError(Exception):
    """Base class for all errors raised by ocr_search."""


# ---------------------------------------------------------------------------
# Worker channel errors
# ---------------------------------------------------------------------------

class WorkerError(OcrSearchError):
    """Base class for failures of the worker process or its streams."""


class StartupError(WorkerError):
    """The worker process could not be spawned (missing runtime, permissions)."""


class WorkerExited(WorkerError):
    """The worker process terminated while a request was still pending."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class ProtocolError(WorkerError):
    """A worker response did not parse as the expected structured value."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class WorkerTimeout(WorkerError, TimeoutError):
    """A request got no response in time.  The worker has been killed."""


# ---------------------------------------------------------------------------
# Recognition errors (worker reported ``status: error``)
# ---------------------------------------------------------------------------

class InitializationError(OcrSearchError):
    """The worker refused to initialise with the requested languages."""


class RecognitionError(OcrSearchError):
    """The worker failed to recognise text in an image."""


# ---------------------------------------------------------------------------
# Query errors
# ---------------------------------------------------------------------------

class QuerySyntaxError(OcrSearchError, ValueError):
    """A search expression could not be parsed."""

    def __init__(self, message: str, query: str = "", position: Optional[int] = None):
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.query = query
        self.position = position
