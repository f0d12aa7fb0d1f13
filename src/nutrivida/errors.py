"""Exception taxonomy for meal plan generation."""

from __future__ import annotations


class NutriVidaError(Exception):
    """Base class for all nutrivida errors."""


class InvalidInput(NutriVidaError, ValueError):
    """Bad request data, rejected before any network call."""


class ConfigurationError(NutriVidaError):
    """Knowledge base or settings are unusable; raised at startup."""


class GenerationError(NutriVidaError):
    """The completion provider could not produce a response."""

    def __init__(self, message: str, reason: str = "provider") -> None:
        super().__init__(message)
        self.reason = reason


class ValidationError(NutriVidaError):
    """The provider responded but the content is unusable."""


class MalformedOutput(ValidationError):
    """No parseable JSON object in the provider response."""


class IncompleteMealPlan(ValidationError):
    """A required day, meal or recipe field is missing."""

    def __init__(self, day: int, meal_type: str | None = None, field: str | None = None) -> None:
        if meal_type is None:
            message = f"Missing data for day {day}"
        elif field is None:
            message = f"Missing {meal_type} for day {day}"
        else:
            message = f"Missing {field} in {meal_type} for day {day}"
        super().__init__(message)
        self.day = day
        self.meal_type = meal_type
        self.field = field
