"""Exception hierarchy for multi-diff."""

from __future__ import annotations


class MultiDiffError(Exception):
    """Base class for all multi-diff errors."""


class DiffInvariantError(MultiDiffError):
    """Raised when the line-count engine produces an impossible result."""


class ConfigError(MultiDiffError):
    """Raised when a configuration file is missing, unreadable, or malformed."""


class ExecutorError(MultiDiffError):
    """Raised when a worker executor fails while holding a task."""


class ExecutorCrashedError(ExecutorError):
    """The worker process exited or its pipe broke mid-exchange."""


class ProtocolError(ExecutorError):
    """The worker replied with a message outside the known schema."""


class TaskFailedError(MultiDiffError):
    """A worker reported a structured error for a single task.

    The executor itself is still healthy; only the task failed.
    """

    def __init__(self, message: str, *, error_type: str = "") -> None:
        super().__init__(message)
        self.error_type = error_type


class PoolClosedError(MultiDiffError):
    """Raised when submitting to an executor pool that has been shut down."""
