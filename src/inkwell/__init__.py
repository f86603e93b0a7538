"""Inkwell: the editing-state engine behind a long-form manuscript editor."""

__version__ = "0.1.0"

__all__ = ["__version__"]
