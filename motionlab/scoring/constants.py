"""Constants for the activation scoring engine.

Constants are organized by functional area:
- Delta rules: wire tokens for the inherit sentinel
- Totals: default rounding for derived parent totals
- Inheritance: default depth guard for the motion ancestry walk
- Grouping: default threshold for grouping-muscle candidates
"""

from __future__ import annotations

import math
from typing import Any

# =============================================================================
# Delta Rule Constants
# =============================================================================

class DeltaTokens:
    """Wire tokens used in persisted delta_rules maps.

    Only the store boundary compares against these; resolution logic works
    on the decoded DeltaEntry variants.
    """

    INHERIT = "inherit"

    @staticmethod
    def is_inherit(raw: Any) -> bool:
        """Check whether a raw delta_rules value is the inherit sentinel.

        Args:
            raw: Raw value from a delta_rules map

        Returns:
            True for "inherit" in any letter case, False otherwise
        """
        return isinstance(raw, str) and raw.strip().lower() == DeltaTokens.INHERIT


# =============================================================================
# Totals Constants
# =============================================================================

class Totals:
    """Defaults for the derived totals view."""

    DECIMAL_PLACES = 2


# =============================================================================
# Inheritance Constants
# =============================================================================

class Inheritance:
    """Defaults for the inheritance resolver."""

    MAX_DEPTH = 20


# =============================================================================
# Grouping Constants
# =============================================================================

class Grouping:
    """Defaults for the muscle grouping helpers."""

    MIN_SELECTABLE_SCORE = 0.5
    PATH_SEPARATOR = " > "


# =============================================================================
# Numeric helpers
# =============================================================================

def is_finite_number(value: Any) -> bool:
    """Check that a value is a real, finite number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def finite_or_zero(value: Any) -> float:
    """Coerce a summand to a float, treating anything non-finite as 0."""
    return float(value) if is_finite_number(value) else 0.0


DEFAULT_DECIMAL_PLACES = Totals.DECIMAL_PLACES
MAX_INHERIT_DEPTH = Inheritance.MAX_DEPTH
INHERIT_TOKEN = DeltaTokens.INHERIT
