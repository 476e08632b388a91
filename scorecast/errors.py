"""Error kinds raised by the scoring engine and its stores."""

import json
from typing import Any, Optional


class ScorecastError(Exception):
    """Base class for engine errors."""


class InvalidScopeError(ScorecastError, ValueError):
    pass


class DiscoveryError(ScorecastError):
    """The outcome source was unreachable or returned malformed data."""


class InvalidCursorError(ScorecastError, ValueError):
    pass


class PredictionLockedError(ScorecastError):
    """The match has kicked off; its predictions can no longer change."""

    def __init__(self, match_id: int):
        super().__init__(f"Predictions for match {match_id} are locked")
        self.match_id = match_id


class StoreError(ScorecastError):
    pass


class QueryLimitError(StoreError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"'in' filter with {size} values exceeds the limit of {limit}")
        self.size = size
        self.limit = limit


class BatchLimitError(StoreError):
    def __init__(self, limit: int):
        super().__init__(f"Write batch is full ({limit} operations)")
        self.limit = limit


class BatchCommitError(StoreError):
    """A write batch failed to commit; none of its operations were applied."""

    def __init__(self, message: str, operations: int):
        super().__init__(message)
        self.operations = operations


class StorePermissionError(StoreError):
    """A store operation was denied by the access policy.

    Carries the attempted path, operation and payload so the caller can
    diagnose which rule rejected it.
    """

    def __init__(self, path: str, operation: str, payload: Optional[Any] = None):
        self.path = path
        self.operation = operation
        self.payload = payload
        context = json.dumps(
            {"path": path, "operation": operation, "payload": payload},
            indent=2,
            default=str,
        )
        super().__init__(f"Missing or insufficient permissions for request:\n{context}")
