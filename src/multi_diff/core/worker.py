"""Process-isolated comparison worker and its message protocol.

The coordinator and a worker share no memory.  They exchange the pickled
dataclasses below over a duplex ``multiprocessing`` pipe:

- ``TaskRequest``  coordinator -> worker
- ``TaskResponse`` worker -> coordinator, on success
- ``TaskError``    worker -> coordinator, when the comparison raised

``None`` sent to the worker asks it to exit.  Every message carries
``PROTOCOL_VERSION``; anything else crossing the boundary is a
``ProtocolError``.
"""

from __future__ import annotations

import asyncio
import logging
import pickle
from dataclasses import dataclass
from typing import TYPE_CHECKING

from multi_diff.core.engine import compute_counts
from multi_diff.core.errors import ExecutorCrashedError, ProtocolError
from multi_diff.core.models import ComparisonRequest, ComparisonResult

if TYPE_CHECKING:
    from multiprocessing.connection import Connection
    from multiprocessing.context import BaseContext
    from multiprocessing.process import BaseProcess
    from pathlib import Path

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = 1
_ENCODING = "utf-8"
_DECODE_ERRORS = "replace"


@dataclass(frozen=True)
class TaskRequest:
    """Ask a worker to run one comparison."""

    task_id: int
    request: ComparisonRequest
    version: int = PROTOCOL_VERSION


@dataclass(frozen=True)
class TaskResponse:
    """Successful comparison result for a task."""

    task_id: int
    result: ComparisonResult
    version: int = PROTOCOL_VERSION


@dataclass(frozen=True)
class TaskError:
    """Structured failure of a single task."""

    task_id: int
    message: str
    error_type: str = ""
    version: int = PROTOCOL_VERSION


def validate_reply(reply: object, task_id: int) -> TaskResponse | TaskError:
    """Check that a worker reply belongs to the schema and to this task.

    Raises:
        ProtocolError: If the reply type, version, or task id is wrong.
    """
    if not isinstance(reply, (TaskResponse, TaskError)):
        msg = f"Unexpected reply type from worker: {type(reply).__name__}"
        raise ProtocolError(msg)
    if reply.version != PROTOCOL_VERSION:
        msg = f"Protocol version mismatch: expected {PROTOCOL_VERSION}, got {reply.version}"
        raise ProtocolError(msg)
    if reply.task_id != task_id:
        msg = f"Reply for task {reply.task_id} while waiting on task {task_id}"
        raise ProtocolError(msg)
    if isinstance(reply, TaskResponse) and not isinstance(reply.result, ComparisonResult):
        msg = f"Malformed result payload: {type(reply.result).__name__}"
        raise ProtocolError(msg)
    return reply


def _read_text(path: Path) -> str:
    return path.read_bytes().decode(_ENCODING, errors=_DECODE_ERRORS)


def compare_request(request: ComparisonRequest) -> ComparisonResult:
    """Load both files of a request and count their line differences.

    A file that vanished after the coordinator stat'ed it is reported as a
    missing result, not an error.

    Args:
        request: The comparison to perform.

    Returns:
        ComparisonResult for the request's target.

    Raises:
        OSError: For I/O failures other than a missing file.
    """
    target = request.target_path
    try:
        if request.reference_content is not None:
            base_text = request.reference_content
        else:
            base_text = _read_text(request.reference_path)
        compare_text = _read_text(target)
    except (FileNotFoundError, IsADirectoryError):
        return ComparisonResult.missing(request.label, target, request.target_root)

    counts = compute_counts(base_text, compare_text, request.ignore_whitespace)
    return ComparisonResult(
        label=request.label,
        counts=counts,
        target_path=target,
        exists=True,
        target_root=request.target_root,
    )


def serve(conn: Connection) -> None:
    """Worker process main loop.

    Answers each TaskRequest until ``None`` arrives or the pipe closes.
    """
    while True:
        try:
            message = conn.recv()
        except EOFError:
            return
        if message is None:
            return
        if not isinstance(message, TaskRequest) or message.version != PROTOCOL_VERSION:
            task_id = getattr(message, "task_id", -1)
            conn.send(TaskError(task_id=task_id, message="Malformed request", error_type="ProtocolError"))
            continue
        try:
            reply: TaskResponse | TaskError = TaskResponse(
                task_id=message.task_id,
                result=compare_request(message.request),
            )
        except Exception as exc:
            reply = TaskError(
                task_id=message.task_id,
                message=str(exc),
                error_type=type(exc).__name__,
            )
        conn.send(reply)


class TaskExecutor:
    """One worker process and the coordinator's end of its pipe.

    Each executor runs at most one task at a time; the pool guarantees this.
    The blocking pipe exchange happens on a thread so the event loop stays
    free.
    """

    def __init__(self, context: BaseContext) -> None:
        """Start a worker process in the given multiprocessing context."""
        parent_conn, child_conn = context.Pipe(duplex=True)
        self._conn: Connection = parent_conn
        self._process: BaseProcess = context.Process(
            target=serve,
            args=(child_conn,),
            daemon=True,
            name="multi-diff-worker",
        )
        self._process.start()
        # Only the worker keeps the child end, so its death surfaces as EOF here.
        child_conn.close()
        logger.debug("Started executor pid=%s", self._process.pid)

    @property
    def pid(self) -> int | None:
        """Process id of the worker."""
        return self._process.pid

    @property
    def process(self) -> BaseProcess:
        """The underlying worker process."""
        return self._process

    def is_alive(self) -> bool:
        """Whether the worker process is still running."""
        return self._process.is_alive()

    async def run(self, task: TaskRequest) -> TaskResponse | TaskError:
        """Send one task and wait for its reply.

        Raises:
            ExecutorCrashedError: If the worker died or the pipe broke.
            ProtocolError: If the reply does not match the schema.
        """
        return await asyncio.to_thread(self._exchange, task)

    def _exchange(self, task: TaskRequest) -> TaskResponse | TaskError:
        try:
            self._conn.send(task)
            reply = self._conn.recv()
        except (EOFError, OSError) as exc:
            msg = f"Executor pid={self.pid} failed during task {task.task_id}: {exc!r}"
            raise ExecutorCrashedError(msg) from exc
        except pickle.PickleError as exc:
            msg = f"Executor pid={self.pid} exchanged an unreadable message for task {task.task_id}: {exc!r}"
            raise ProtocolError(msg) from exc
        return validate_reply(reply, task.task_id)

    def terminate(self) -> None:
        """Stop the worker process without waiting for it."""
        if self._process.is_alive():
            self._process.terminate()

    async def join(self) -> None:
        """Wait for the worker process to exit."""
        await asyncio.to_thread(self._process.join)

    def close(self) -> None:
        """Release the coordinator end of the pipe."""
        self._conn.close()
