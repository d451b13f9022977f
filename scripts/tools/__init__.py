"""
Catalog Tools Package

Command-line helpers for working with muscle/motion catalog dumps.

Core modules:
- catalog_cli: lint catalog data, preview composed scores and grouping options
"""

__version__ = "1.0.0"
