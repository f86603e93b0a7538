"""Core domain types and utilities shared by the editor packages."""

from .ranges import TextRange

__all__ = ["TextRange"]
