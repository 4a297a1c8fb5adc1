"""
Recognition Worker Server
==========================
The program on the other end of the ``WorkerChannel``.  Reads one command
per line from stdin and writes exactly one JSON object per line to stdout.

Commands::

    init <lang1> <lang2> ...   -> {"status": "success"}
    read_text <path>           -> {"status": "success", "data": [...]}
    close                      -> {"status": "success"}, then exit

Errors never kill the loop; they are answered with
``{"status": "error", "message": "..."}``.

Only replies may reach the parent's stdout pipe: the channel pairs them with
requests in order, so one stray line would shift every later reply.
``run`` keeps a private duplicate of file descriptor 1 for replies and
points fd 1 (and ``sys.stdout``) at stderr, where prints from libraries and
C-level writes from Tesseract or OpenCV end up in the channel's log.
"""

import json
import logging
import os
import sys
from typing import Callable, Dict, IO, List, Optional, Protocol, Sequence, Tuple

logger = logging.getLogger(__name__)


class Recognizer(Protocol):
    def read_text(self, image_path: str) -> List[Dict]:
        ...


RecognizerFactory = Callable[[Sequence[str]], Recognizer]


def success(data=None) -> Dict:
    response = {"status": "success"}
    if data is not None:
        response["data"] = data
    return response


def error(message: str) -> Dict:
    return {"status": "error", "message": message}


class WorkerServer:
    """Dispatches protocol commands to a recogniser built on ``init``."""

    def __init__(self, recognizer_factory: RecognizerFactory):
        self.recognizer_factory = recognizer_factory
        self.recognizer: Optional[Recognizer] = None

    def handle(self, line: str) -> Tuple[Optional[Dict], bool]:
        """
        Process one request line.

        Returns:
            (response or None for blank lines, keep_running)
        """
        parts = line.strip().split()
        if not parts:
            return None, True
        command, args = parts[0], parts[1:]

        if command == "close":
            logger.info("close received, shutting down")
            return success(), False
        if command == "init":
            return self._init(args), True
        if command == "read_text":
            # Paths may contain spaces: everything after the command is the path.
            return self._read_text(line.strip()[len(command):].strip()), True
        return error(f"Unknown command: {command}"), True

    def _init(self, languages: List[str]) -> Dict:
        if not languages:
            return error("init requires at least one language code")
        try:
            self.recognizer = self.recognizer_factory(languages)
        except Exception as exc:
            logger.error("init failed: %s", exc)
            return error(f"Failed to initialise recogniser: {exc}")
        logger.info("Recogniser initialised for %s", ",".join(languages))
        return success()

    def _read_text(self, path: str) -> Dict:
        if self.recognizer is None:
            return error("Recogniser not initialised; send init first")
        if not path:
            return error("read_text requires an image path")
        try:
            return success(self.recognizer.read_text(path))
        except Exception as exc:
            logger.error("read_text failed for %s: %s", path, exc)
            return error(f"Failed to read text from image {path}: {exc}")

    def serve(self, stdin: IO[str], stdout: IO[str]) -> None:
        """Answer requests until ``close`` or end of input."""
        for line in stdin:
            response, keep_running = self.handle(line)
            if response is not None:
                stdout.write(json.dumps(response) + "\n")
                stdout.flush()
            if not keep_running:
                break


def reserve_stdout() -> IO[str]:
    """
    Return a private stream on the original stdout and send fd 1 to stderr.

    Must run before the recogniser is built so that nothing written
    through ``print`` or fd 1 afterwards can reach the reply pipe.
    """
    sys.stdout.flush()
    replies = os.fdopen(os.dup(1), "w", encoding="utf-8")
    os.dup2(2, 1)
    sys.stdout = sys.stderr
    return replies


def run(recognizer_factory: RecognizerFactory) -> None:
    """Serve stdin with replies on a reserved stdout (worker process entry)."""
    replies = reserve_stdout()
    try:
        WorkerServer(recognizer_factory).serve(sys.stdin, replies)
    finally:
        replies.close()
