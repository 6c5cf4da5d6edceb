"""Shared test fixtures for multi-diff."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from multi_diff.core.errors import ExecutorCrashedError, PoolClosedError, TaskFailedError
from multi_diff.core.models import DiffGroup, Workspace
from multi_diff.core.worker import compare_request

if TYPE_CHECKING:
    from multi_diff.core.models import ComparisonRequest, ComparisonResult

REFERENCE_TEXT = "line 1\nline 2\nline 3\n"
RELATIVE_PATH = Path("src") / "app.py"


class InProcessPool:
    """Executor pool stand-in that compares synchronously in this process."""

    def __init__(self, size: int, *, fail_labels: frozenset[str] = frozenset()) -> None:
        self.size = size
        self.fail_labels = fail_labels
        self.submitted: list[ComparisonRequest] = []
        self.closed = False

    def submit(self, request: ComparisonRequest) -> asyncio.Future[ComparisonResult]:
        if self.closed:
            msg = "Executor pool is closed"
            raise PoolClosedError(msg)
        self.submitted.append(request)
        future: asyncio.Future[ComparisonResult] = asyncio.get_running_loop().create_future()
        if request.label in self.fail_labels:
            future.set_exception(ExecutorCrashedError(f"worker for {request.label} died"))
            return future
        try:
            future.set_result(compare_request(request))
        except OSError as exc:
            future.set_exception(TaskFailedError(str(exc), error_type=type(exc).__name__))
        return future

    def shutdown(self) -> asyncio.Future[None]:
        self.closed = True
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        future.set_result(None)
        return future


class ControlledPool(InProcessPool):
    """Pool whose futures stay pending until the test resolves them."""

    def __init__(self, size: int) -> None:
        super().__init__(size)
        self.pending: list[tuple[ComparisonRequest, asyncio.Future[ComparisonResult]]] = []

    def submit(self, request: ComparisonRequest) -> asyncio.Future[ComparisonResult]:
        if self.closed:
            msg = "Executor pool is closed"
            raise PoolClosedError(msg)
        self.submitted.append(request)
        future: asyncio.Future[ComparisonResult] = asyncio.get_running_loop().create_future()
        self.pending.append((request, future))
        return future


class PoolFactory:
    """Callable pool factory recording every pool it builds."""

    def __init__(self, *, controlled: bool = False, fail_labels: frozenset[str] = frozenset()) -> None:
        self.controlled = controlled
        self.fail_labels = fail_labels
        self.pools: list[InProcessPool] = []

    def __call__(self, size: int) -> InProcessPool:
        pool = ControlledPool(size) if self.controlled else InProcessPool(size, fail_labels=self.fail_labels)
        self.pools.append(pool)
        return pool

    @property
    def submitted_labels(self) -> list[str]:
        return [request.label for pool in self.pools for request in pool.submitted]


@pytest.fixture
def pool_factory() -> PoolFactory:
    """In-process pool factory."""
    return PoolFactory()


@pytest.fixture
def make_pool_factory() -> type[PoolFactory]:
    """The pool factory class, for tests that need controlled or failing pools."""
    return PoolFactory


@pytest.fixture
def relative_path() -> Path:
    """Workspace-relative path of the sample file."""
    return RELATIVE_PATH


@pytest.fixture
def workspace_dirs(tmp_path: Path) -> dict[str, Path]:
    """Create four workspaces holding ``src/app.py`` with known differences.

    Layout:
        alpha/src/app.py   reference (line 1 / line 2 / line 3)
        beta/src/app.py    identical to alpha
        gamma/src/app.py   line 2 changed
        delta/             file missing
    """
    roots = {name: tmp_path / name for name in ("alpha", "beta", "gamma", "delta")}
    for root in roots.values():
        root.mkdir()

    for name in ("alpha", "beta"):
        target = roots[name] / RELATIVE_PATH
        target.parent.mkdir(parents=True)
        target.write_text(REFERENCE_TEXT)

    gamma = roots["gamma"] / RELATIVE_PATH
    gamma.parent.mkdir(parents=True)
    gamma.write_text("line 1\nchanged line 2\nline 3\n")

    return roots


@pytest.fixture
def group(workspace_dirs: dict[str, Path]) -> DiffGroup:
    """A diff group over the four sample workspaces."""
    return DiffGroup(
        name="sample",
        workspaces=tuple(Workspace(name=name, path=path) for name, path in workspace_dirs.items()),
    )


@pytest.fixture
def reference(workspace_dirs: dict[str, Path]) -> Path:
    """The reference file inside the alpha workspace."""
    return workspace_dirs["alpha"] / RELATIVE_PATH


@pytest.fixture
def config_file(tmp_path: Path, workspace_dirs: dict[str, Path]) -> Path:
    """A TOML configuration describing the sample group."""
    lines = ['[[groups]]', 'name = "sample"', "ignore_whitespace = false", ""]
    for name, path in workspace_dirs.items():
        lines += ["[[groups.workspaces]]", f'name = "{name}"', f"path = {json.dumps(str(path))}", ""]
    config = tmp_path / "multi-diff.toml"
    config.write_text("\n".join(lines))
    return config
