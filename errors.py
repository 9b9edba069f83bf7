"""
Exception hierarchy for the study planner.
"""

from typing import Dict, Optional


class PlannerError(Exception):
    """Base exception for all planner errors."""
    pass


class InvalidInputError(PlannerError):
    """Raised when a request payload fails validation before any algorithm runs."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict:
        data = {"error": self.message}
        if self.field:
            data["field"] = self.field
        return data


class PersistenceError(PlannerError):
    """Raised when a review record cannot be read or written."""
    pass
