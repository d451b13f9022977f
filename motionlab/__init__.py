"""Muscle activation scoring for exercise motions.

The ``scoring`` package holds the hierarchical score resolution engine;
``config`` and ``core`` carry settings and logging.
"""

__all__ = ["scoring"]
