"""Caller-input errors raised by the scheduler before any state is produced."""

from __future__ import annotations


class SchedulerError(ValueError):
    """Base class for scheduler input errors."""


class InvalidRating(SchedulerError):
    """Rating is not one of 1=Again, 2=Hard, 3=Good, 4=Easy."""

    def __init__(self, rating):
        self.rating = rating
        super().__init__(f"Rating must be an integer 1-4, got {rating!r}")


class InvalidConfig(SchedulerError):
    """Desired retention, weight table or settings are out of range."""
