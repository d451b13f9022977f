"""Boundary schemas for raw catalog rows."""
from motionlab.schemas.catalog import (
    CatalogSchema,
    ComboRuleSchema,
    ModifierRowSchema,
    MotionSchema,
    MuscleSchema,
)

__all__ = ["CatalogSchema", "ComboRuleSchema", "ModifierRowSchema", "MotionSchema", "MuscleSchema"]
