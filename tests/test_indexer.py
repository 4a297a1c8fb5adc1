"""
Tests for ocr_search/ingestion/indexer.py
"""

import pytest

from ocr_search.errors import ProtocolError, RecognitionError, WorkerExited
from ocr_search.index import DocumentIndex
from ocr_search.ingestion.indexer import IndexingReport, index_images
from ocr_search.ocr.client import RecognizedText


class StubClient:
    """Maps image paths to recognition results (or exceptions)."""

    def __init__(self, results):
        self.results = results
        self.calls = []

    def recognize(self, path):
        self.calls.append(path)
        result = self.results[path]
        if isinstance(result, Exception):
            raise result
        return [RecognizedText(text, 0.9) for text in result]


def test_builds_one_document_per_image():
    client = StubClient({
        "/d/_images/recipe.png": ["Salt and", "dough"],
        "/d/_images/bread.png": ["Bread"],
    })
    index = index_images(client, ["/d/_images/recipe.png", "/d/_images/bread.png"], progress=False)
    assert [d.identifier for d in index] == ["recipe.png", "bread.png"]
    assert index[0].words == {"salt", "and", "dough"}


def test_failures_and_empty_images_are_counted():
    client = StubClient({
        "a.png": ["Water"],
        "broken.png": RecognitionError("cannot open image"),
        "blank.png": [],
        "weird.png": ProtocolError("bad data", raw="[1]"),
        "b.png": ["Salt"],
    })
    report = IndexingReport()
    paths = ["a.png", "broken.png", "blank.png", "weird.png", "b.png"]
    index = index_images(client, paths, progress=False, report=report)

    assert client.calls == paths
    assert len(index) == 2
    assert report.processed == 5
    assert report.indexed == 2
    assert report.empty == 1
    assert report.failed == ["broken.png", "weird.png"]


def test_extends_existing_index():
    existing = DocumentIndex()
    result = index_images(StubClient({"a.png": ["Water"]}), ["a.png"], index=existing, progress=False)
    assert result is existing
    assert len(existing) == 1


def test_worker_failure_stops_the_run():
    client = StubClient({
        "a.png": WorkerExited("worker died", returncode=1),
        "b.png": ["Salt"],
    })
    with pytest.raises(WorkerExited):
        index_images(client, ["a.png", "b.png"], progress=False)
    assert client.calls == ["a.png"]


def test_with_progress_bar():
    index = index_images(StubClient({"a.png": ["Water"]}), ["a.png"], progress=True)
    assert len(index) == 1
