from __future__ import annotations


class GitggError(RuntimeError):
    """Base class for failures reported to the user once and aborting the operation."""


class ConfigurationError(GitggError):
    pass


class SelectionError(GitggError):
    pass


class ProtocolError(GitggError):
    """Raised for report messages the session cannot serve."""


class OperationCancelled(Exception):
    """Signals a cooperative early stop. Not an error; callers exit silently."""
