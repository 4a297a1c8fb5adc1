"""
Shared fixtures: small stand-in worker programs run with the current
interpreter, so channel tests need neither Tesseract nor images.
"""

import sys
import textwrap
from pathlib import Path

import pytest

from ocr_search.config import WorkerConfig

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Speaks the worker protocol and has extra commands to misbehave on demand.
FAKE_WORKER = textwrap.dedent('''
    import json
    import sys
    import time

    def reply(obj):
        sys.stdout.write(json.dumps(obj) + "\\n")
        sys.stdout.flush()

    for line in sys.stdin:
        parts = line.split()
        if not parts:
            continue
        cmd, args = parts[0], parts[1:]
        if cmd == "close":
            reply({"status": "success"})
            break
        elif cmd == "init":
            reply({"status": "success"} if args != ["xx"] else {"status": "error", "message": "unsupported language xx"})
        elif cmd == "echo":
            reply({"status": "success", "data": args})
        elif cmd == "garbage":
            sys.stdout.write("this is not json\\n")
            sys.stdout.flush()
        elif cmd == "array":
            reply([1, 2, 3])
        elif cmd == "crash":
            sys.exit(3)
        elif cmd == "slowcrash":
            time.sleep(0.5)
            sys.exit(4)
        elif cmd == "hang":
            time.sleep(60)
        elif cmd == "read_text":
            if args and args[0] == "crash.png":
                sys.exit(5)
            if args and args[0] == "missing.png":
                reply({"status": "error", "message": "image not found"})
            else:
                reply({"status": "success", "data": [
                    {"text": "Salt", "confidence": 0.9, "bbox": [[0, 0], [10, 0], [10, 5], [0, 5]]},
                    {"text": "dough", "confidence": 0.8, "bbox": [[12, 0], [30, 0], [30, 5], [12, 5]]},
                ]})
        else:
            reply({"status": "error", "message": "unknown command " + cmd})
''')

# The real worker loop with a recogniser that "reads" text files.  Files
# named noisy* also chatter on stdout the way OCR libraries sometimes do.
TEXT_FILE_WORKER = textwrap.dedent('''
    import os
    import sys
    sys.path.insert(0, {root!r})

    from ocr_search.worker.server import run

    class TextFileRecognizer:
        def __init__(self, languages):
            self.languages = languages

        def read_text(self, image_path):
            if os.path.basename(image_path).startswith("noisy"):
                print("Warning: low contrast", flush=True)
                os.write(1, b"Estimating resolution as 300\\n")
            with open(image_path, encoding="utf-8") as f:
                words = f.read().split()
            return [{{"text": w, "confidence": 1.0, "bbox": []}} for w in words]

    run(TextFileRecognizer)
''')


@pytest.fixture
def fake_worker_config(tmp_path) -> WorkerConfig:
    script = tmp_path / "fake_worker.py"
    script.write_text(FAKE_WORKER, encoding="utf-8")
    return WorkerConfig(
        executable_path=sys.executable,
        worker_args=["-u", str(script)],
        request_timeout=15,
    )


@pytest.fixture
def text_file_worker_config(tmp_path) -> WorkerConfig:
    script = tmp_path / "text_file_worker.py"
    script.write_text(TEXT_FILE_WORKER.format(root=str(PROJECT_ROOT)), encoding="utf-8")
    return WorkerConfig(
        executable_path=sys.executable,
        worker_args=["-u", str(script)],
        request_timeout=15,
    )
