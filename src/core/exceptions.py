from typing import Any


class LeaderboardError(Exception):
    """Base exception for leaderboard engine errors."""


class ValidationError(LeaderboardError):
    """Raised when input is empty or malformed. Nothing has been mutated."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class StorageError(LeaderboardError):
    """Raised by key-value store backends; propagated verbatim."""


class UpstreamError(LeaderboardError):
    """Raised when the engagement/achievement provider fails during ingestion."""

    def __init__(self, message: str, user_id: str | None = None) -> None:
        super().__init__(message)
        self.user_id = user_id


class OperationFailedError(LeaderboardError):
    """Wraps any other internal failure. The original error is ``__cause__``."""

    def __init__(self, operation: str, message: str | None = None) -> None:
        super().__init__(message or f"Failed to {operation}")
        self.operation = operation
