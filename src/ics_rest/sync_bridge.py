"""Run one HTTP request synchronously in a worker process.

The caller creates an empty, process-scoped temp file, starts a fresh
interpreter that performs the request with httpx, and polls the file until
the worker publishes exactly one record:

* ``STATUS:<code>,<body>`` on success
* ``ERROR:<json>`` on transport failure, where the JSON object carries
  ``type``, ``message`` and ``trace``

The poll loop blocks the calling thread outright, which is the point: code
written for blocking I/O gets a real synchronous call. The temp file is
removed before :meth:`SyncBridge.execute` returns, on every path.

Known liveness risk: no timeout is applied. A worker that never finishes
(for example a server that accepts the connection and never answers) blocks
the caller indefinitely. A worker that exits without writing a record is
detected and reported as an error.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import subprocess
import sys
import tempfile
import time
import traceback
import uuid
from typing import IO, Any, Optional, Union

import httpx

from .types import BridgeResult, ResolvedRequest

STATUS_PREFIX = "STATUS:"
ERROR_PREFIX = "ERROR:"
SYNC_FILE_PREFIX = ".ics-rest-sync-"
PART_SUFFIX = ".part"
DEFAULT_POLL_INTERVAL = 0.001  # seconds

_log = logging.getLogger("ics_rest")

# Directory containing the ics_rest package, put on the worker's PYTHONPATH.
_IMPORT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def stream_request(client: Union[httpx.Client, httpx.AsyncClient], request: ResolvedRequest) -> Any:
    """Open a streaming exchange for *request* on either kind of httpx client."""
    return client.stream(
        request.method,
        request.url,
        headers=request.headers,
        content=request.body.encode("utf-8") if request.body is not None else None,
    )


# ---- Record format ----

def format_status_record(status: int, text: str) -> str:
    return f"{STATUS_PREFIX}{status},{text}"


def format_error_record(error: BaseException) -> str:
    payload = {
        "type": type(error).__name__,
        "message": str(error) or type(error).__name__,
        "trace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    }
    return ERROR_PREFIX + json.dumps(payload)


def parse_record(record: str) -> BridgeResult:
    """Parse a worker record into a :class:`BridgeResult`.

    Raises:
        ValueError: If the record carries neither sentinel.
    """
    if record.startswith(ERROR_PREFIX):
        payload = record[len(ERROR_PREFIX):]
        try:
            error = json.loads(payload)
        except ValueError:
            error = None
        if not isinstance(error, dict):
            error = {"type": "", "message": payload, "trace": payload}
        return BridgeResult(error=error)

    if record.startswith(STATUS_PREFIX):
        code, _, body = record[len(STATUS_PREFIX):].partition(",")
        return BridgeResult(status=int(code), text=body)

    raise ValueError(f"Unrecognized worker record: {record[:40]!r}")


def _read(path: str) -> str:
    with open(path, encoding="utf-8", newline="") as fh:
        return fh.read()


def _publish(path: str, record: str) -> None:
    # The poller sees either an empty file or the whole record.
    part = path + PART_SUFFIX
    with open(part, "w", encoding="utf-8", newline="") as fh:
        fh.write(record)
    os.replace(part, path)


def _remove(path: str) -> None:
    with contextlib.suppress(FileNotFoundError):
        os.remove(path)


# ---- Worker side ----

def build_worker_program() -> str:
    """Program text handed to ``python -c``; argv[1] is the sync file path."""
    return "import sys\nfrom ics_rest.sync_bridge import run_worker\nrun_worker(sys.argv[1])\n"


def run_worker(sync_file: str, stdin: Optional[IO[str]] = None) -> None:
    """Perform the request read from *stdin* and publish the result to *sync_file*."""
    request = ResolvedRequest.from_dict(json.load(stdin or sys.stdin))
    try:
        with httpx.Client(verify=request.verify, timeout=None) as client:
            with stream_request(client, request) as resp:
                text = "".join(resp.iter_text())
        record = format_status_record(resp.status_code, text)
    except (httpx.HTTPError, httpx.InvalidURL, UnicodeError) as exc:
        record = format_error_record(exc)
    _publish(sync_file, record)


# ---- Caller side ----

class SyncBridge:
    """Executes resolved requests in worker processes, blocking the caller.

    Args:
        directory: Where sync files are created (default: the system temp dir).
        poll_interval: Sleep between reads of the sync file, in seconds.
            ``0`` spins without sleeping.
        python: Interpreter used for the worker (default: ``sys.executable``).
    """

    def __init__(
        self,
        directory: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        python: Optional[str] = None,
    ) -> None:
        self.directory = directory or tempfile.gettempdir()
        self.poll_interval = poll_interval
        self.python = python or sys.executable

    def new_sync_file(self) -> str:
        """Create an empty sync file unique to this process and call."""
        name = f"{SYNC_FILE_PREFIX}{os.getpid()}-{uuid.uuid4().hex}"
        path = os.path.join(self.directory, name)
        with open(path, "w", encoding="utf-8"):
            pass
        return path

    def execute(self, request: ResolvedRequest) -> BridgeResult:
        """Run *request* in a worker and block until its result is available."""
        sync_file = self.new_sync_file()
        _log.debug("sync %s %s via %s", request.method, request.url, sync_file)
        try:
            # A file, not a pipe: the worker never blocks writing stderr.
            with tempfile.TemporaryFile() as errors:
                proc = self._spawn(sync_file, request, errors)
                try:
                    record = self._wait_for_record(sync_file, proc)
                except BaseException:
                    proc.kill()
                    raise
                finally:
                    returncode = proc.wait()
                stderr = self._drain(errors)
        finally:
            _remove(sync_file)
            _remove(sync_file + PART_SUFFIX)

        if not record:
            _log.debug("sync worker exited with code %s and no result", returncode)
            return BridgeResult(
                error={
                    "type": "WorkerExitedError",
                    "message": f"worker exited with code {returncode} without a result",
                    "trace": stderr,
                }
            )
        return parse_record(record)

    def _spawn(self, sync_file: str, request: ResolvedRequest, errors: IO[bytes]) -> subprocess.Popen:
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(p for p in (_IMPORT_ROOT, env.get("PYTHONPATH")) if p)
        proc = subprocess.Popen(
            [self.python, "-c", build_worker_program(), sync_file],
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=errors,
            env=env,
        )
        # A worker that dies before reading stdin is caught by the poll loop.
        with contextlib.suppress(BrokenPipeError):
            proc.stdin.write(json.dumps(request.to_dict()).encode("utf-8"))
        with contextlib.suppress(BrokenPipeError):
            proc.stdin.close()
        return proc

    def _wait_for_record(self, sync_file: str, proc: subprocess.Popen) -> str:
        while True:
            record = _read(sync_file)
            if record:
                return record
            if proc.poll() is not None:
                # The record may have landed between the read and the poll.
                return _read(sync_file)
            if self.poll_interval:
                time.sleep(self.poll_interval)

    @staticmethod
    def _drain(errors: IO[bytes]) -> str:
        errors.seek(0)
        return errors.read().decode("utf-8", "replace")
