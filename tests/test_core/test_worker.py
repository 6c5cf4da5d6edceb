"""Tests for multi_diff.core.worker."""

from __future__ import annotations

import multiprocessing
from pathlib import Path

import pytest

from multi_diff.core.errors import ProtocolError
from multi_diff.core.models import ComparisonRequest, ComparisonResult, DiffCounts
from multi_diff.core.worker import (
    PROTOCOL_VERSION,
    TaskError,
    TaskRequest,
    TaskResponse,
    compare_request,
    serve,
    validate_reply,
)

RELATIVE_PATH = Path("src") / "app.py"


def _request(workspace_dirs: dict[str, Path], label: str, **kwargs: object) -> ComparisonRequest:
    return ComparisonRequest(
        reference_path=workspace_dirs["alpha"] / RELATIVE_PATH,
        target_root=workspace_dirs[label],
        target_relative_path=RELATIVE_PATH,
        label=label,
        **kwargs,  # type: ignore[arg-type]
    )


class TestCompareRequest:
    """Verify the in-worker comparison."""

    def test_identical_target(self, workspace_dirs: dict[str, Path]) -> None:
        result = compare_request(_request(workspace_dirs, "beta"))
        assert result.exists is True
        assert result.counts == DiffCounts()
        assert result.label == "beta"
        assert result.target_root == workspace_dirs["beta"]

    def test_changed_target(self, workspace_dirs: dict[str, Path]) -> None:
        result = compare_request(_request(workspace_dirs, "gamma"))
        assert result.counts == DiffCounts(added=1, removed=1)
        assert result.total_changed_lines == 2

    def test_missing_target(self, workspace_dirs: dict[str, Path]) -> None:
        result = compare_request(_request(workspace_dirs, "delta"))
        assert result.exists is False
        assert result.total_changed_lines == 0
        assert result.target_path == workspace_dirs["delta"] / RELATIVE_PATH

    def test_preloaded_reference_content_wins(self, workspace_dirs: dict[str, Path]) -> None:
        request = _request(workspace_dirs, "beta", reference_content="line 1\n")
        result = compare_request(request)
        assert result.counts == DiffCounts(added=2, removed=0)

    def test_whitespace_flag_is_honored(self, workspace_dirs: dict[str, Path]) -> None:
        (workspace_dirs["beta"] / RELATIVE_PATH).write_text("line   1\nline 2\n  line 3\n")
        assert compare_request(_request(workspace_dirs, "beta")).total_changed_lines == 4
        assert compare_request(_request(workspace_dirs, "beta", ignore_whitespace=True)).total_changed_lines == 0

    def test_undecodable_bytes_are_replaced(self, workspace_dirs: dict[str, Path]) -> None:
        (workspace_dirs["beta"] / RELATIVE_PATH).write_bytes(b"line 1\nline \xff\nline 3\n")
        result = compare_request(_request(workspace_dirs, "beta"))
        assert result.counts == DiffCounts(added=1, removed=1)

    def test_other_os_errors_propagate(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file.txt"
        blocker.write_text("not a directory\n")
        request = ComparisonRequest(
            reference_path=blocker,
            target_root=blocker,
            target_relative_path=Path("child.txt"),
            label="broken",
        )
        with pytest.raises(NotADirectoryError):
            compare_request(request)


class TestValidateReply:
    """Verify reply schema checks."""

    @staticmethod
    def _result() -> ComparisonResult:
        return ComparisonResult.unchanged("b", Path("/b/x.py"), Path("/b"))

    def test_accepts_response(self) -> None:
        reply = TaskResponse(task_id=4, result=self._result())
        assert validate_reply(reply, 4) is reply

    def test_accepts_error(self) -> None:
        reply = TaskError(task_id=4, message="boom", error_type="OSError")
        assert validate_reply(reply, 4) is reply

    def test_rejects_foreign_type(self) -> None:
        with pytest.raises(ProtocolError, match="Unexpected reply type"):
            validate_reply({"task_id": 4}, 4)

    def test_rejects_version_mismatch(self) -> None:
        reply = TaskResponse(task_id=4, result=self._result(), version=PROTOCOL_VERSION + 1)
        with pytest.raises(ProtocolError, match="version"):
            validate_reply(reply, 4)

    def test_rejects_wrong_task(self) -> None:
        with pytest.raises(ProtocolError, match="task 3"):
            validate_reply(TaskResponse(task_id=3, result=self._result()), 4)

    def test_rejects_malformed_result(self) -> None:
        reply = TaskResponse(task_id=4, result="nope")  # type: ignore[arg-type]
        with pytest.raises(ProtocolError, match="Malformed"):
            validate_reply(reply, 4)


class TestServe:
    """Drive the worker loop over a pipe within this process."""

    @staticmethod
    def _exchange(messages: list[object]) -> list[object]:
        ours, theirs = multiprocessing.Pipe(duplex=True)
        try:
            for message in messages:
                ours.send(message)
            ours.send(None)
            serve(theirs)
            replies = []
            while ours.poll():
                replies.append(ours.recv())
            return replies
        finally:
            ours.close()
            theirs.close()

    def test_answers_requests_in_order(self, workspace_dirs: dict[str, Path]) -> None:
        replies = self._exchange(
            [
                TaskRequest(task_id=1, request=_request(workspace_dirs, "beta")),
                TaskRequest(task_id=2, request=_request(workspace_dirs, "gamma")),
            ]
        )
        assert [type(r) for r in replies] == [TaskResponse, TaskResponse]
        first, second = replies
        assert isinstance(first, TaskResponse)
        assert isinstance(second, TaskResponse)
        assert first.task_id == 1
        assert first.result.total_changed_lines == 0
        assert second.task_id == 2
        assert second.result.total_changed_lines == 2

    def test_failure_becomes_task_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file.txt"
        blocker.write_text("x\n")
        request = ComparisonRequest(
            reference_path=blocker,
            target_root=blocker,
            target_relative_path=Path("child.txt"),
            label="broken",
        )
        (reply,) = self._exchange([TaskRequest(task_id=7, request=request)])
        assert isinstance(reply, TaskError)
        assert reply.task_id == 7
        assert reply.error_type == "NotADirectoryError"

    def test_malformed_request(self) -> None:
        (reply,) = self._exchange(["hello"])
        assert isinstance(reply, TaskError)
        assert reply.task_id == -1
        assert reply.error_type == "ProtocolError"

    def test_returns_on_closed_pipe(self) -> None:
        ours, theirs = multiprocessing.Pipe(duplex=True)
        ours.close()
        serve(theirs)
        theirs.close()
