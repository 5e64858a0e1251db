#errors.py
"""
Typed errors raised by the curve fit and the digit data loader.
Both subclass ValueError, so callers that only catch ValueError keep working.
"""

class InvalidArgument(ValueError):
    """An argument is outside its allowed range, e.g. a non-positive sample count."""

class DimensionMismatch(ValueError):
    """Two sequences that must line up element by element have different lengths."""
