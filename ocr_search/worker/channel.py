"""
Worker Channel
===============
Owns one external text-recognition worker process and runs a
request/response protocol over its standard streams.

Protocol:
    request  -- one ASCII line ``"<command> <arg1> <arg2> ...\\n"`` on stdin
    response -- one JSON object per line on stdout

Architecture decisions:
  - Requests are tracked in an explicit FIFO queue of ``PendingRequest``
    entries, each with a generated id and a ``concurrent.futures.Future``.
    The worker handles commands strictly in arrival order over a single
    pipe, so the oldest pending entry owns the next response line.  This
    lets callers pipeline several commands instead of relying on a single
    one-shot listener.
  - Two coupled state machines describe the channel:

        process : NOT_STARTED -> STARTING -> RUNNING -> EXITED (-> STARTING ...)
        channel : IDLE <-> AWAITING_RESPONSE

    An EXITED transition while AWAITING_RESPONSE rejects every pending
    entry with ``WorkerExited``, so no request is ever left unresolved.
  - The process is started lazily by the first command and restarted by
    the first command after it exits.
  - A background thread reads stdout line by line; a second one drains
    stderr into the log so the worker can never block on a full pipe.
  - Timeouts (per call or ``WorkerConfig.request_timeout``) kill the worker
    and reject its pending requests with ``WorkerTimeout``.

Usage::

    channel = WorkerChannel(WorkerConfig.from_settings(load_settings()))
    channel.send("init", ["en", "fr"])
    result = channel.send("read_text", ["/data/docs/_images/page.png"])
    channel.close()
"""

import itertools
import json
import logging
import subprocess
import threading
from collections import deque
from concurrent.futures import Future, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Sequence

from ocr_search.config import WorkerConfig
from ocr_search.errors import (
    ProtocolError,
    StartupError,
    WorkerExited,
    WorkerTimeout,
)

logger = logging.getLogger(__name__)

CLOSE_TIMEOUT = 10.0
STDERR_TAIL_LINES = 20


class ProcessState(Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"


class ChannelState(Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"


@dataclass
class PendingRequest:
    """A command written to the worker whose response has not arrived yet."""

    request_id: int
    command: str
    process: subprocess.Popen
    future: Future = field(default_factory=Future)


class WorkerChannel:
    """
    Line-delimited JSON request/response bridge to one worker process.

    Thread-safe: ``send``/``submit`` may be called from several threads;
    responses are matched to requests in submission order.
    """

    def __init__(self, config: Optional[WorkerConfig] = None):
        self.config = config or WorkerConfig()
        self.process_state = ProcessState.NOT_STARTED
        self.spawn_count = 0

        self._process: Optional[subprocess.Popen] = None
        self._pending: Deque[PendingRequest] = deque()
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        # Held across enqueue + write so queue order always equals pipe order.
        self._write_lock = threading.Lock()
        self._reader: Optional[threading.Thread] = None
        self._stderr_tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def channel_state(self) -> ChannelState:
        with self._lock:
            return ChannelState.AWAITING_RESPONSE if self._pending else ChannelState.IDLE

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._process is not None

    @property
    def pid(self) -> Optional[int]:
        with self._lock:
            return self._process.pid if self._process is not None else None

    # ------------------------------------------------------------------
    # Process lifecycle
    # ------------------------------------------------------------------

    def ensure_started(self) -> subprocess.Popen:
        """Spawn the worker unless a live process handle already exists."""
        with self._lock:
            if self._process is not None:
                return self._process

            self.process_state = ProcessState.STARTING
            cmd = self.config.command()
            logger.info("Starting worker process: %s", " ".join(cmd))
            try:
                proc = subprocess.Popen(
                    cmd,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    env=self.config.build_environment(),
                )
            except OSError as exc:
                self.process_state = ProcessState.EXITED
                logger.error("Failed to start worker process %s: %s", cmd[0], exc)
                raise StartupError(f"Failed to start worker process '{cmd[0]}': {exc}") from exc

            self._process = proc
            self.spawn_count += 1
            self._stderr_tail.clear()
            self.process_state = ProcessState.RUNNING

            self._reader = threading.Thread(
                target=self._read_stdout,
                args=(proc,),
                name=f"ocr-worker-stdout-{proc.pid}",
                daemon=True,
            )
            self._reader.start()
            threading.Thread(
                target=self._read_stderr,
                args=(proc,),
                name=f"ocr-worker-stderr-{proc.pid}",
                daemon=True,
            ).start()
            logger.debug("Worker process started (pid=%d)", proc.pid)
            return proc

    def _on_exit(self, proc: subprocess.Popen, returncode: Optional[int]) -> None:
        """
        Handle termination of *proc*.

        Idempotent: only the first notification for the current process
        clears the handle and rejects pending requests.
        """
        with self._lock:
            if self._process is not proc:
                return
            self._process = None
            self.process_state = ProcessState.EXITED
            orphaned = list(self._pending)
            self._pending.clear()
            last_stderr = self._stderr_tail[-1] if self._stderr_tail else ""

        logger.info("Worker process exited with code %s", returncode)
        if orphaned:
            message = f"Worker process exited with code {returncode} while a request was pending"
            if last_stderr:
                message += f": {last_stderr}"
            for request in orphaned:
                logger.warning(
                    "Rejecting pending request #%d (%s): worker exited",
                    request.request_id, request.command,
                )
                request.future.set_exception(WorkerExited(message, returncode=returncode))

    # ------------------------------------------------------------------
    # Stream readers (background threads)
    # ------------------------------------------------------------------

    def _read_stdout(self, proc: subprocess.Popen) -> None:
        for raw in iter(proc.stdout.readline, b""):
            self._handle_line(raw)
        self._on_exit(proc, proc.wait())

    def _read_stderr(self, proc: subprocess.Popen) -> None:
        for raw in iter(proc.stderr.readline, b""):
            line = raw.decode("utf-8", errors="replace").rstrip()
            if line:
                self._stderr_tail.append(line)
                logger.debug("[worker %d] %s", proc.pid, line)

    def _handle_line(self, raw: bytes) -> None:
        text = raw.decode("utf-8", errors="replace").strip()
        if not text:
            return

        with self._lock:
            request = self._pending.popleft() if self._pending else None
        if request is None:
            logger.warning("Dropping worker output with no pending request: %.200s", text)
            return

        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse worker output: %.200s", text)
            request.future.set_exception(
                ProtocolError(f"Failed to parse worker output: {exc}", raw=text)
            )
            return

        if not isinstance(value, dict):
            request.future.set_exception(
                ProtocolError("Worker response is not a JSON object", raw=text)
            )
            return

        logger.debug("Request #%d (%s) answered", request.request_id, request.command)
        request.future.set_result(value)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, command: str, args: Sequence[Any] = ()) -> Future:
        """
        Write one command and return a future for its response.

        Several submits may be outstanding at once; they resolve in order.
        """
        line = _format_command(command, args)
        with self._write_lock:
            with self._lock:
                proc = self.ensure_started()
                request = PendingRequest(
                    request_id=next(self._ids), command=command, process=proc
                )
                request.future.set_running_or_notify_cancel()
                self._pending.append(request)

            logger.debug("Request #%d -> %s", request.request_id, line.rstrip())
            try:
                proc.stdin.write(line.encode("utf-8"))
                proc.stdin.flush()
            except OSError as exc:
                # The stdout reader sees EOF next and rejects this request.
                logger.warning("Failed to write to worker stdin: %s", exc)
        return request.future

    def send(
        self,
        command: str,
        args: Sequence[Any] = (),
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Send one command and block until its response arrives.

        Raises:
            StartupError  : the worker could not be launched
            WorkerExited  : the worker died before answering
            ProtocolError : the response was not a JSON object
            WorkerTimeout : no answer within *timeout* (worker is killed)
        """
        future = self.submit(command, args)
        if timeout is None:
            timeout = self.config.request_timeout

        done, _ = wait([future], timeout=timeout)
        if not done:
            self._expire(future, command, timeout)
        return future.result()

    def _expire(self, future: Future, command: str, timeout: Optional[float]) -> None:
        """Kill the worker after a request timed out and reject its queue."""
        with self._lock:
            request = next((r for r in self._pending if r.future is future), None)
            if request is None:
                # Answered (or rejected) between the wait and the lock.
                return
            proc = request.process
            orphaned = list(self._pending)
            self._pending.clear()
            if self._process is proc:
                self._process = None
                self.process_state = ProcessState.EXITED

        logger.error(
            "Request #%d (%s) timed out after %ss; killing worker (pid=%d)",
            request.request_id, command, timeout, proc.pid,
        )
        proc.kill()
        for pending in orphaned:
            pending.future.set_exception(
                WorkerTimeout(f"Worker did not answer '{pending.command}' within {timeout}s")
            )

    def close(self, timeout: float = CLOSE_TIMEOUT) -> None:
        """
        Ask the worker to exit and wait for it.  No-op when not running.
        """
        with self._lock:
            proc = self._process
        if proc is None:
            return

        logger.info("Closing worker process (pid=%d)", proc.pid)
        try:
            self.send("close", timeout=timeout)
        except WorkerExited:
            logger.debug("Worker exited before acknowledging close")
        except (ProtocolError, WorkerTimeout) as exc:
            logger.warning("Worker did not acknowledge close cleanly: %s", exc)

        if proc.stdin and not proc.stdin.closed:
            try:
                proc.stdin.close()
            except OSError as exc:
                logger.debug("Closing worker stdin failed: %s", exc)

        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Worker did not exit within %ss; killing it", timeout)
            proc.kill()
            proc.wait()

        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=timeout)
        self._on_exit(proc, proc.returncode)

    def __enter__(self) -> "WorkerChannel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _format_command(command: str, args: Sequence[Any]) -> str:
    parts: List[str] = [command, *(str(a) for a in args)]
    for part in parts:
        if "\n" in part or "\r" in part:
            raise ValueError(f"Worker command parts must not contain newlines: {part!r}")
    return " ".join(parts) + "\n"
