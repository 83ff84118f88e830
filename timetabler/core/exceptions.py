from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors mapped to a ``{message, details}`` JSON body."""

    def __init__(self, message: str, status_code: int = 500, details: dict[str, Any] | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class SchedulerError(AppError):
    """Invalid timetabling input, such as an assignment naming an unknown lesson or room."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status_code=400, details=details)


class MissingEssentialDataError(SchedulerError):
    """Raised before solving when a required input catalog is empty."""

    def __init__(self, missing: list[str]):
        super().__init__(
            f"Essential data missing: {', '.join(missing)}",
            details={"kind": "MissingEssentialData", "missing": missing},
        )
        self.missing = missing
