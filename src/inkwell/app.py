"""Application bootstrap helpers and the ``inkwell`` command line."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, TextIO, get_type_hints

from .editor.document_model import BookMetadata, Chapter, PreviewConfig, new_identifier
from .editor.document_store import DocumentStore
from .editor.preview import render_chapter
from .editor.session import Confirmer, EditorSession
from .editor.word_count import count_characters
from .events import EventBus
from .services.assistant import WritingAssistant
from .services.export import ExportService
from .services.settings import Settings, SettingsStore
from .utils import logging as logging_utils
from .utils.scheduling import AsyncioScheduler, Scheduler

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, force: bool = False) -> Path:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    log_path = logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))
    return log_path


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_session(
    settings: Settings | None = None,
    *,
    scheduler: Scheduler | None = None,
    store: DocumentStore | None = None,
    event_bus: EventBus | None = None,
    confirm: Confirmer | None = None,
    assistant: WritingAssistant | None = None,
    exporter: ExportService | None = None,
) -> EditorSession:
    """Wire an :class:`EditorSession` from settings and optional collaborators."""

    bus = event_bus or (store.event_bus if store is not None else EventBus())
    session = EditorSession(
        scheduler or AsyncioScheduler(),
        store=store or DocumentStore(bus),
        event_bus=bus,
        settings=settings or Settings(),
        confirm=confirm,
        assistant=assistant,
        exporter=exporter,
    )
    _LOGGER.debug(
        "Editor session ready (chapters=%d, typewriter=%s)",
        session.store.chapter_count(),
        session.typewriter.enabled,
    )
    return session


def load_manuscript(paths: Sequence[Path], *, event_bus: EventBus | None = None) -> DocumentStore:
    """Build a store with one chapter per Markdown file, in argument order."""

    if not paths:
        raise ValueError("At least one manuscript file is required")
    chapters = tuple(
        Chapter(
            chapter_id=new_identifier(),
            title=path.stem,
            content=path.read_text(encoding="utf-8"),
            order=index,
        )
        for index, path in enumerate(paths)
    )
    metadata = BookMetadata(title=paths[0].parent.name or BookMetadata().title)
    return DocumentStore(event_bus, metadata=metadata, chapters=chapters)


def main(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None) -> int:
    """Run the ``inkwell`` command line and return its exit status."""

    out = stdout or sys.stdout
    args = _build_parser().parse_args(argv)

    debug = args.debug or _truthy(os.environ.get("INKWELL_DEBUG", ""))
    configure_logging(debug)

    try:
        cli_overrides = parse_overrides(args.overrides)
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    location = args.settings_path or os.environ.get("INKWELL_SETTINGS_PATH")
    settings_store = SettingsStore(Path(location).expanduser() if location else None)
    settings = load_settings(store=settings_store, overrides=cli_overrides or None)
    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.command == "settings":
        report = {"path": str(settings_store.path), "settings": settings.to_dict()}
        out.write(json.dumps(report, indent=2, sort_keys=True) + "\n")
        return 0

    try:
        store = load_manuscript([Path(item).expanduser() for item in args.files])
    except OSError as exc:
        print(f"Unable to read manuscript: {exc}", file=sys.stderr)
        return 1

    if args.command == "stats":
        counts = [(chapter.title, count_characters(chapter.content)) for chapter in store.chapters]
        for title, count in counts:
            out.write(f"{title}\t{count}\n")
        out.write(f"Total\t{sum(count for _, count in counts)}\n")
    else:
        out.write(render_chapter(store.active_chapter.content, config=settings.preview).html)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inkwell",
        description="Inspect manuscripts with the Inkwell editing engine.",
    )
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level.")
    parser.add_argument(
        "--settings",
        dest="settings_path",
        metavar="PATH",
        help="Settings file to use instead of ~/.inkwell/settings.json.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override one setting for this run; may be repeated.",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    stats = commands.add_parser("stats", help="Print per-chapter and total character counts.")
    stats.add_argument("files", nargs="+", metavar="FILE")
    preview = commands.add_parser("preview", help="Render a Markdown chapter to HTML.")
    preview.add_argument("files", nargs=1, metavar="FILE")
    commands.add_parser("settings", help="Print the effective settings as JSON.")
    return parser


def parse_overrides(entries: Sequence[str]) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` strings into typed :class:`Settings` overrides.

    Values are converted by the field's declared type; ``preview`` takes a
    JSON object that is merged over the current preview config.
    """

    hints = get_type_hints(Settings)
    parsed: Dict[str, Any] = {}
    for entry in entries:
        key, separator, raw = entry.partition("=")
        key = key.strip()
        if not separator:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        if key not in hints:
            raise ValueError(f"Unknown setting '{key}'.")
        convert = _OVERRIDE_PARSERS.get(hints[key], str)
        parsed[key] = convert(raw.strip())
    return parsed


def _truthy(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _parse_json_object(value: str) -> Dict[str, Any]:
    try:
        payload = json.loads(value or "{}")
    except json.JSONDecodeError as exc:
        raise ValueError("Expected a JSON object") from exc
    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object")
    return payload


_OVERRIDE_PARSERS: Mapping[Any, Callable[[str], Any]] = {
    bool: _parse_bool,
    int: lambda value: int(value, 10),
    float: float,
    PreviewConfig: _parse_json_object,
}


__all__ = ["build_session", "configure_logging", "load_manuscript", "load_settings", "main", "parse_overrides"]
