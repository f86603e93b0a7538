"""Service layer helpers (settings, export, assistant, cover ingestion)."""

from .assistant import AssistantController, AssistantState, AssistantTask, WritingAssistant
from .covers import CoverTooLargeError, ingest_cover
from .export import ExportController, ExportService
from .settings import Settings, SettingsStore

__all__ = [
    "AssistantController",
    "AssistantState",
    "AssistantTask",
    "CoverTooLargeError",
    "ExportController",
    "ExportService",
    "Settings",
    "SettingsStore",
    "WritingAssistant",
    "ingest_cover",
]
