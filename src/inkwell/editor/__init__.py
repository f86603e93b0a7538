"""Editor package containing the document model and editing-state managers."""

from importlib import import_module
from typing import Any

from . import document_model

__all__ = ["document_model", "session"]

_LAZY_MODULES = {
    "document_store",
    "history",
    "preview",
    "selection",
    "session",
    "snapshots",
    "typewriter",
    "word_count",
}


def __getattr__(name: str) -> Any:
    if name in _LAZY_MODULES:
        module = import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
