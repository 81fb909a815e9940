"""Failure kinds of a check-in generation run.

Every kind except SearchFailure terminates the run and is surfaced to the
caller as a single error event carrying ``status_code``.
"""

from datetime import datetime
from typing import Optional


class CheckInError(Exception):
    """Base class for failures surfaced on the status channel."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(CheckInError):
    status_code = 401
    default_message = "Unauthorized"


class RateLimited(CheckInError):
    status_code = 429

    def __init__(self, next_available_at: datetime):
        self.next_available_at = next_available_at
        super().__init__(
            f"You can generate your next check-in on {next_available_at.date().isoformat()}"
        )


class RunInProgress(CheckInError):
    status_code = 429
    default_message = "A check-in is already being generated. Please wait for it to finish."


class NoActivityTypes(CheckInError):
    status_code = 400
    default_message = "Please create some activity types first before generating a check-in."


class DataFetchFailure(CheckInError):
    status_code = 500
    default_message = "Failed to fetch your data"


class GenerationFailure(CheckInError):
    status_code = 500
    default_message = "Failed to generate check-in. Please try again."


class PersistenceFailure(CheckInError):
    status_code = 500
    default_message = "Your check-in was generated but could not be saved. Please try again."


class SearchFailure(CheckInError):
    """Resource search failed. Recovered locally, never sent to the caller."""
    default_message = "Resource search failed"
