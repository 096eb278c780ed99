"""Curio - multi-run consensus appraisal for collectibles."""

__version__ = "0.1.0"
