"""
Tests for ocr_search/ocr/client.py
"""

import logging

import pytest

from ocr_search.errors import (
    InitializationError,
    ProtocolError,
    RecognitionError,
    WorkerExited,
)
from ocr_search.ocr.client import RecognitionClient, RecognizedText
from ocr_search.worker.channel import WorkerChannel


class StubChannel:
    """Records commands and replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.sent = []
        self.closed = False

    def send(self, command, args=()):
        self.sent.append((command, list(args)))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


SUCCESS = {"status": "success"}


class TestInitialize:
    def test_sends_languages_in_order(self):
        channel = StubChannel(SUCCESS)
        client = RecognitionClient(channel)
        client.initialize(["en", "fr"])
        assert channel.sent == [("init", ["en", "fr"])]
        assert client.initialized is True
        assert client.languages == ["en", "fr"]

    def test_error_status_raises(self):
        client = RecognitionClient(StubChannel({"status": "error", "message": "no fr data"}))
        with pytest.raises(InitializationError, match="no fr data"):
            client.initialize(["fr"])
        assert client.initialized is False

    def test_missing_status_raises(self):
        client = RecognitionClient(StubChannel({}))
        with pytest.raises(InitializationError):
            client.initialize(["en"])

    def test_empty_language_list(self):
        client = RecognitionClient(StubChannel())
        with pytest.raises(ValueError):
            client.initialize([])


class TestRecognize:
    def test_object_entries(self):
        data = [
            {"text": "Salt", "confidence": 0.91, "bbox": [[0, 0], [10, 0], [10, 5], [0, 5]]},
            {"text": "dough", "confidence": 0.5, "bbox": []},
        ]
        channel = StubChannel(SUCCESS, {"status": "success", "data": data})
        client = RecognitionClient(channel)
        client.initialize(["en"])

        items = client.recognize("/imgs/_images/a.png")
        assert channel.sent[-1] == ("read_text", ["/imgs/_images/a.png"])
        assert items == [
            RecognizedText("Salt", 0.91, ((0.0, 0.0), (10.0, 0.0), (10.0, 5.0), (0.0, 5.0))),
            RecognizedText("dough", 0.5, ()),
        ]

    def test_triple_entries(self):
        data = [[[[1, 2], [3, 2], [3, 4], [1, 4]], "Water", 0.7]]
        client = RecognitionClient(StubChannel(SUCCESS, {"status": "success", "data": data}))
        client.initialize(["en"])
        (item,) = client.recognize("a.png")
        assert item.text == "Water"
        assert item.confidence == 0.7
        assert item.region[0] == (1.0, 2.0)

    def test_empty_data(self):
        client = RecognitionClient(StubChannel(SUCCESS, {"status": "success", "data": []}))
        client.initialize(["en"])
        assert client.recognize("blank.png") == []

    def test_error_status_raises(self):
        client = RecognitionClient(
            StubChannel(SUCCESS, {"status": "error", "message": "cannot open image"})
        )
        client.initialize(["en"])
        with pytest.raises(RecognitionError, match="cannot open image"):
            client.recognize("broken.png")

    def test_success_without_data_raises(self):
        client = RecognitionClient(StubChannel(SUCCESS, {"status": "success"}))
        client.initialize(["en"])
        with pytest.raises(RecognitionError):
            client.recognize("a.png")

    def test_malformed_entry_is_protocol_error(self):
        client = RecognitionClient(
            StubChannel(SUCCESS, {"status": "success", "data": [{"confidence": 0.3}]})
        )
        client.initialize(["en"])
        with pytest.raises(ProtocolError):
            client.recognize("a.png")

    def test_channel_errors_pass_through(self):
        client = RecognitionClient(StubChannel(SUCCESS, WorkerExited("gone", returncode=1)))
        client.initialize(["en"])
        with pytest.raises(WorkerExited):
            client.recognize("a.png")

    def test_recognize_before_initialize_still_sends(self, caplog):
        channel = StubChannel({"status": "success", "data": []})
        client = RecognitionClient(channel)
        with caplog.at_level(logging.WARNING, logger="ocr_search.ocr.client"):
            assert client.recognize("a.png") == []
        assert channel.sent == [("read_text", ["a.png"])]
        assert "before initialize" in caplog.text


class TestShutdown:
    def test_shutdown_closes_channel(self):
        channel = StubChannel(SUCCESS)
        client = RecognitionClient(channel)
        client.initialize(["en"])
        client.shutdown()
        assert channel.closed is True
        assert client.initialized is False

    def test_context_manager(self):
        channel = StubChannel()
        with RecognitionClient(channel):
            pass
        assert channel.closed is True


class TestAgainstWorkerProcess:
    """Client + real channel + fake worker process"""

    def test_initialize_then_recognize(self, fake_worker_config):
        with RecognitionClient(WorkerChannel(fake_worker_config)) as client:
            client.initialize(["en", "fr"])
            items = client.recognize("recipe.png")
        assert [i.text for i in items] == ["Salt", "dough"]
        assert items[0].confidence == 0.9

    def test_worker_init_error(self, fake_worker_config):
        with RecognitionClient(WorkerChannel(fake_worker_config)) as client:
            with pytest.raises(InitializationError, match="unsupported language"):
                client.initialize(["xx"])

    def test_worker_read_error(self, fake_worker_config):
        with RecognitionClient(WorkerChannel(fake_worker_config)) as client:
            client.initialize(["en"])
            with pytest.raises(RecognitionError, match="image not found"):
                client.recognize("missing.png")

    def test_worker_crash_during_recognition(self, fake_worker_config):
        with RecognitionClient(WorkerChannel(fake_worker_config)) as client:
            client.initialize(["en"])
            with pytest.raises(WorkerExited):
                client.recognize("crash.png")
