"""Utility helpers (logging, scheduling)."""
