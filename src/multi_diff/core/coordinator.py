"""Run coordinator: fans a reference file out to every workspace of its group.

One coordinator owns the run counter, the active cancellation handle, and
the result cache.  It is their only writer; nothing here is shared with the
worker processes.

A run moves ``idle -> running -> {completed, superseded, cancelled, failed}``
(or ``unmatched`` when no group applies).  Starting a new run fires the
previous run's cancellation handle, which shuts its executor pool down.
Results are published only if the run's id is still the current id at
publish time, so an older run can never overwrite a newer one regardless of
completion order.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import TYPE_CHECKING

from multi_diff.core.cache import MISSING_MTIME, CacheKeyParts, ResultCache
from multi_diff.core.config import find_group, relative_reference
from multi_diff.core.errors import ExecutorError, PoolClosedError, TaskFailedError
from multi_diff.core.models import ComparisonRequest, ComparisonResult, RunOutcome, RunState
from multi_diff.core.paths import clean_path, same_path
from multi_diff.core.pool import ExecutorPool, clamp_pool_size

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence
    from pathlib import Path

    from multi_diff.core.models import DiffGroup, Workspace

    PoolFactory = Callable[[int], ExecutorPool]
    Publisher = Callable[[RunOutcome], None]
    Notifier = Callable[[str], None]

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "An error occurred while processing the diff."


class CancellationHandle:
    """Cooperative cancellation signal for one run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()


def rank_results(results: Iterable[ComparisonResult], reference: Path) -> tuple[ComparisonResult, ...]:
    """Sort results for display and drop the reference file itself.

    Existing files come before missing ones; existing files are ordered by
    ascending total changed lines.  The sort is stable.
    """
    ordered = sorted(results, key=lambda r: (not r.exists, r.total_changed_lines if r.exists else 0))
    return tuple(r for r in ordered if not same_path(r.target_path, reference))


def _stat_mtime(path: Path) -> int:
    """Nanosecond mtime of a regular file, or MISSING_MTIME."""
    try:
        stat = path.stat()
    except OSError:
        return MISSING_MTIME
    if not path.is_file():
        return MISSING_MTIME
    return stat.st_mtime_ns


def _read_reference(path: Path) -> str | None:
    try:
        return path.read_bytes().decode("utf-8", errors="replace")
    except OSError:
        return None


class _Run:
    """Per-run state: identity, cancellation, and a lazily created pool."""

    def __init__(self, run_id: int, handle: CancellationHandle, factory: PoolFactory, pool_size: int) -> None:
        self.run_id = run_id
        self.handle = handle
        self._factory = factory
        self._pool_size = pool_size
        self._pool: ExecutorPool | None = None
        self._closed = False

    def pool(self) -> ExecutorPool:
        if self._closed:
            msg = f"Run {self.run_id} has already released its executors"
            raise PoolClosedError(msg)
        if self._pool is None:
            self._pool = self._factory(self._pool_size)
        return self._pool

    def close(self) -> Awaitable[None] | None:
        self._closed = True
        if self._pool is None:
            return None
        return self._pool.shutdown()


class RunCoordinator:
    """Orchestrates diff runs against the configured groups.

    Usage::

        coordinator = RunCoordinator(groups, publisher=view.show)
        outcome = await coordinator.run(reference=Path("/src/api/app.py"))
    """

    def __init__(
        self,
        groups: Sequence[DiffGroup],
        *,
        cache: ResultCache | None = None,
        pool_factory: PoolFactory | None = None,
        pool_size: int | None = None,
        publisher: Publisher | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            groups: Configured diff groups, in matching priority order.
            cache: Result cache. Defaults to a fresh ResultCache().
            pool_factory: Builds an executor pool of the given size for each
                run that needs one. Defaults to ExecutorPool.
            pool_size: Upper bound on executors per run.
            publisher: Receives each current run's complete outcome.
            notifier: Receives one user-facing message per failed run.
        """
        self._groups = tuple(groups)
        self._cache = cache if cache is not None else ResultCache()
        self._pool_factory: PoolFactory = pool_factory or ExecutorPool
        self._pool_size = pool_size
        self._publisher = publisher
        self._notifier = notifier

        self._current_run_id = 0
        self._active: CancellationHandle | None = None
        self._state = RunState.idle
        self._reference: Path | None = None
        self._last_outcome: RunOutcome | None = None

    @property
    def current_run_id(self) -> int:
        """Identifier of the most recently started run."""
        return self._current_run_id

    @property
    def state(self) -> RunState:
        """State of the most recently started run."""
        return self._state

    @property
    def cache(self) -> ResultCache:
        """The coordinator's result cache."""
        return self._cache

    @property
    def groups(self) -> tuple[DiffGroup, ...]:
        """Configured diff groups."""
        return self._groups

    @property
    def reference(self) -> Path | None:
        """Reference file of the most recent run."""
        return self._reference

    @property
    def last_outcome(self) -> RunOutcome | None:
        """Most recently published outcome."""
        return self._last_outcome

    def cancel(self) -> None:
        """Cancel the active run, if any."""
        if self._active is not None:
            self._active.cancel()

    async def run(self, group: DiffGroup | None = None, reference: Path | str | None = None) -> RunOutcome:
        """Compare the reference file against every workspace of its group.

        Args:
            group: Explicit group; otherwise matched by the reference's path.
            reference: Reference file; defaults to the previous run's.

        Returns:
            The run's outcome. Superseded and cancelled outcomes are returned
            but never published.

        Raises:
            ValueError: If no reference was given and none is remembered.
        """
        effective = clean_path(reference) if reference is not None else self._reference
        if effective is None:
            msg = "No reference file to compare"
            raise ValueError(msg)

        self._current_run_id += 1
        run_id = self._current_run_id
        if self._active is not None:
            self._active.cancel()
        handle = CancellationHandle()
        self._active = handle
        self._reference = effective
        self._state = RunState.running
        logger.debug("Run %d started for %s", run_id, effective)

        matched_group: DiffGroup | None = None
        workspace: Workspace | None = None
        try:
            matched_group, workspace = find_group(self._groups, effective, group)
            if matched_group is None:
                return self._publish(RunOutcome(run_id=run_id, state=RunState.unmatched, reference_path=effective))

            results = await self._compare_all(run_id, handle, effective, matched_group, workspace)
        except Exception:
            logger.exception("Diff run %d failed", run_id)
            if not self._is_current(run_id):
                return self._abandon(run_id, effective)
            outcome = self._publish(
                RunOutcome(
                    run_id=run_id,
                    state=RunState.failed,
                    reference_path=effective,
                    group=matched_group,
                    workspace=workspace,
                )
            )
            if self._notifier is not None:
                self._notifier(FAILURE_MESSAGE)
            return outcome

        if results is None or not self._is_current(run_id) or handle.cancelled:
            return self._abandon(run_id, effective)

        return self._publish(
            RunOutcome(
                run_id=run_id,
                state=RunState.completed,
                reference_path=effective,
                group=matched_group,
                workspace=workspace,
                results=rank_results(results, effective),
            )
        )

    def _is_current(self, run_id: int) -> bool:
        return run_id == self._current_run_id

    def _publish(self, outcome: RunOutcome) -> RunOutcome:
        if not self._is_current(outcome.run_id):
            return self._abandon(outcome.run_id, outcome.reference_path)
        self._state = outcome.state
        self._last_outcome = outcome
        logger.debug("Run %d %s with %d results", outcome.run_id, outcome.state, len(outcome.results))
        if self._publisher is not None:
            self._publisher(outcome)
        return outcome

    def _abandon(self, run_id: int, reference: Path | None) -> RunOutcome:
        if self._is_current(run_id):
            state = RunState.cancelled
            self._state = state
        else:
            state = RunState.superseded
        logger.debug("Run %d %s; results discarded", run_id, state)
        return RunOutcome(run_id=run_id, state=state, reference_path=reference)

    async def _compare_all(
        self,
        run_id: int,
        handle: CancellationHandle,
        reference: Path,
        group: DiffGroup,
        workspace: Workspace | None,
    ) -> list[ComparisonResult] | None:
        """Compare against all workspaces; None if the run went stale."""
        relative = relative_reference(reference, workspace)
        reference_content = await asyncio.to_thread(_read_reference, reference)
        reference_mtime = await asyncio.to_thread(_stat_mtime, reference)

        pool_size = min(clamp_pool_size(self._pool_size), max(1, len(group.workspaces)))
        run = _Run(run_id, handle, self._pool_factory, pool_size)

        watcher = asyncio.create_task(self._close_on_cancel(run))
        cancelled = asyncio.create_task(handle.wait())
        targets = [
            asyncio.create_task(
                self._compare_target(
                    run,
                    ws,
                    reference=reference,
                    reference_mtime=reference_mtime,
                    reference_content=reference_content,
                    relative=relative,
                    ignore_whitespace=group.ignore_whitespace,
                )
            )
            for ws in group.workspaces
        ]
        settled = asyncio.gather(*targets)
        try:
            await asyncio.wait({settled, cancelled}, return_when=asyncio.FIRST_COMPLETED)
            if not settled.done():
                return None
            results = settled.result()
        finally:
            for task in (*targets, watcher, cancelled):
                task.cancel()
            closing = run.close()
            if closing is not None:
                await closing

        if handle.cancelled or not self._is_current(run_id):
            return None
        return [r for r in results if r is not None]

    @staticmethod
    async def _close_on_cancel(run: _Run) -> None:
        """Release the run's executors as soon as its handle fires."""
        await run.handle.wait()
        run.close()

    async def _compare_target(
        self,
        run: _Run,
        ws: Workspace,
        *,
        reference: Path,
        reference_mtime: int,
        reference_content: str | None,
        relative: Path,
        ignore_whitespace: bool,
    ) -> ComparisonResult | None:
        target = clean_path(ws.path / relative)
        if same_path(target, reference):
            return ComparisonResult.unchanged(ws.name, target, ws.path)

        target_mtime = await asyncio.to_thread(_stat_mtime, target)
        if target_mtime == MISSING_MTIME:
            return ComparisonResult.missing(ws.name, target, ws.path)
        if reference_mtime == MISSING_MTIME:
            return ComparisonResult.unchanged(ws.name, target, ws.path)

        parts = CacheKeyParts(
            base_path=reference,
            base_mtime=reference_mtime,
            compare_path=target,
            compare_mtime=target_mtime,
            ignore_whitespace=ignore_whitespace,
        )
        cached = self._cache.get(parts, label=ws.name, target_root=ws.path)
        if cached is not None:
            return dataclasses.replace(cached, label=ws.name, target_path=target, target_root=ws.path)

        if run.handle.cancelled or not self._is_current(run.run_id):
            return None

        request = ComparisonRequest(
            reference_path=reference,
            target_root=ws.path,
            target_relative_path=relative,
            label=ws.name,
            ignore_whitespace=ignore_whitespace,
            reference_content=reference_content,
        )
        try:
            result = await run.pool().submit(request)
        except (ExecutorError, TaskFailedError, PoolClosedError, OSError) as exc:
            logger.warning("Comparison against %s (%s) failed: %s", ws.name, target, exc)
            return ComparisonResult.missing(ws.name, target, ws.path)

        if result.exists:
            self._cache.set(parts, result)
        return result
