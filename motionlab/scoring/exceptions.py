"""Exception hierarchy for the activation scoring engine.

The engine's read side degrades gracefully on malformed catalog data and
does not raise. These exceptions belong to the write boundary (authored
score maps and delta rules) and to catalog decoding.

Exception Hierarchy:
- ScoringException (base)
  - ValidationException (write-boundary validation failures)
    - InvalidScoreError (non-numeric or non-finite score / delta value)
    - DeltaRuleError (malformed delta_rules entry)
  - CatalogException (catalog-related failures)
    - CatalogLoadError (raw catalog could not be decoded)

Example:
    try:
        store = store.set_entry("SQUAT_HIGH_BAR", {"QUADS": float("nan")})
    except InvalidScoreError as e:
        logger.error(f"Rejected delta: {e}", extra=e.details)
    except ScoringException as e:
        logger.error(f"General scoring error: {e}")
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================

class ScoringException(Exception):
    """Base exception for all scoring-related errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary with additional error context
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation."""
        return self.message


# =============================================================================
# Validation Exceptions
# =============================================================================

class ValidationException(ScoringException):
    """Base exception for write-boundary validation errors."""

    pass


class InvalidScoreError(ValidationException):
    """Raised when a score or delta value is not a finite number.

    Example:
        ```python
        if not is_finite_number(value):
            raise InvalidScoreError(
                f"Score for '{muscle_id}' must be a finite number",
                details={"muscle_id": muscle_id, "value": repr(value)},
            )
        ```
    """

    pass


class DeltaRuleError(ValidationException):
    """Raised when a delta_rules entry is neither a delta map nor "inherit".

    Example:
        ```python
        raise DeltaRuleError(
            f"Invalid delta entry for motion '{motion_id}'",
            details={"motion_id": motion_id, "entry_type": type(raw).__name__},
        )
        ```
    """

    pass


# =============================================================================
# Catalog Exceptions
# =============================================================================

class CatalogException(ScoringException):
    """Base exception for catalog-related errors."""

    pass


class CatalogLoadError(CatalogException):
    """Raised when raw catalog records cannot be decoded."""

    pass
