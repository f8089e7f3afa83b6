"""
Utility functions for AUTHTABLES.
"""

from .inflection import pluralize

__all__ = ["pluralize"]
