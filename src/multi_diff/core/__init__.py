"""Public API for multi_diff.core."""

from __future__ import annotations

from multi_diff.core.cache import CacheEntry, CacheKeyParts, ResultCache
from multi_diff.core.config import discover_config, find_group, load_config
from multi_diff.core.coordinator import CancellationHandle, RunCoordinator, rank_results
from multi_diff.core.engine import compute_counts
from multi_diff.core.errors import (
    ConfigError,
    DiffInvariantError,
    ExecutorCrashedError,
    ExecutorError,
    MultiDiffError,
    PoolClosedError,
    ProtocolError,
    TaskFailedError,
)
from multi_diff.core.filtering import EligibilityConfig, EligibilityFilter
from multi_diff.core.models import (
    ComparisonRequest,
    ComparisonResult,
    DiffCounts,
    DiffGroup,
    OutputMode,
    RunOutcome,
    RunState,
    Workspace,
)
from multi_diff.core.pool import ExecutorPool
from multi_diff.core.worker import TaskExecutor

__all__ = [
    "CacheEntry",
    "CacheKeyParts",
    "CancellationHandle",
    "ComparisonRequest",
    "ComparisonResult",
    "ConfigError",
    "DiffCounts",
    "DiffGroup",
    "DiffInvariantError",
    "EligibilityConfig",
    "EligibilityFilter",
    "ExecutorCrashedError",
    "ExecutorError",
    "ExecutorPool",
    "MultiDiffError",
    "OutputMode",
    "PoolClosedError",
    "ProtocolError",
    "ResultCache",
    "RunCoordinator",
    "RunOutcome",
    "RunState",
    "TaskExecutor",
    "TaskFailedError",
    "Workspace",
    "compute_counts",
    "discover_config",
    "find_group",
    "load_config",
    "rank_results",
]
