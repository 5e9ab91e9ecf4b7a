"""
API module initialization
"""

from . import health, imports

__all__ = ["health", "imports"]
