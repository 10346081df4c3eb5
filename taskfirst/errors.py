"""Exception hierarchy for the workspace and its storage backends.

The metrics engine never raises for bad data; these errors belong to the
editing surface and the persistence layer.
"""

from __future__ import annotations


class TaskFirstError(Exception):
    """Base class for all workspace errors."""


class BackendError(TaskFirstError):
    """A storage backend failed to read or write."""


class BackendNotConfigured(BackendError):
    """A remote backend was used without credentials."""


class ItemNotFoundError(TaskFirstError):
    """A task, subtask or project id did not resolve."""


class AlreadyFinishedError(TaskFirstError):
    """Handoff was requested for an item that is already Finished."""


class PermissionDenied(TaskFirstError):
    """The current role may not perform the requested edit."""
