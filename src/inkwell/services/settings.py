"""Editor settings and their JSON persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from ..editor.document_model import EditorLayout, PreviewConfig

__all__ = ["Settings", "SettingsStore", "SETTINGS_DIR"]

LOGGER = logging.getLogger(__name__)
SETTINGS_DIR = Path.home() / ".inkwell"
SETTINGS_VERSION = 1
_THEMES = ("light", "dark")


def _env_flag(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on", "debug"}


def _env_int(raw: str) -> int:
    return int(raw, 10)


# Environment variable -> (settings field, converter).
_ENV_OVERRIDES: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "INKWELL_THEME": ("theme", str),
    "INKWELL_LAYOUT": ("layout", str),
    "INKWELL_DEBUG_LOGGING": ("debug_logging", _env_flag),
    "INKWELL_TYPEWRITER_MODE": ("typewriter_mode", _env_flag),
    "INKWELL_HISTORY_DEBOUNCE": ("history_debounce_seconds", float),
    "INKWELL_SNAPSHOT_IDLE": ("snapshot_idle_seconds", float),
    "INKWELL_SNAPSHOT_RETENTION": ("snapshot_retention", _env_int),
    "INKWELL_HISTORY_LIMIT": ("history_limit", _env_int),
    "INKWELL_COVER_MAX_BYTES": ("cover_max_bytes", _env_int),
}


@dataclass(slots=True)
class Settings:
    """User-configurable editor settings persisted between sessions.

    ``history_limit`` of 0 keeps every undo entry. Retry fields shape the
    assistant's backoff; ``notice_timeout_ms`` is how long a UI keeps a
    notice on screen.
    """

    history_debounce_seconds: float = 0.6
    snapshot_idle_seconds: float = 300.0
    snapshot_retention: int = 50
    history_limit: int = 0
    cover_max_bytes: int = 2 * 1024 * 1024
    typewriter_mode: bool = False
    theme: str = "light"
    layout: str = EditorLayout.SPLIT.value
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    ai_max_retries: int = 2
    ai_retry_min_seconds: float = 0.5
    ai_retry_max_seconds: float = 4.0
    notice_timeout_ms: int = 3000
    debug_logging: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["preview"] = self.preview.to_dict()
        return data

    def merged(self, changes: Mapping[str, Any]) -> Settings:
        """Return a normalised copy with known, non-``None`` ``changes`` applied.

        A mapping under ``preview`` is merged over the current preview config.
        """

        known = _known_fields(changes)
        known = {key: value for key, value in known.items() if value is not None}
        preview = known.get("preview")
        if isinstance(preview, Mapping):
            known["preview"] = PreviewConfig.from_dict({**self.preview.to_dict(), **preview})
        if not known:
            return self
        return _normalized(replace(self, **known))


class SettingsStore:
    """Reads and writes :class:`Settings` as JSON at ``path``.

    ``load`` layers three sources: the file, runtime ``overrides`` (the CLI's
    ``--set``) and finally ``INKWELL_*`` environment variables.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or SETTINGS_DIR / "settings.json"

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        stored = self._read_file()
        settings = self._from_payload(stored) if stored else Settings()
        LOGGER.debug("Settings loaded from %s (keys=%s)", self._path, sorted(stored))

        if overrides:
            LOGGER.debug("Applying CLI settings overrides: %s", sorted(overrides))
            settings = settings.merged(overrides)

        from_env = _environment_overrides()
        if from_env:
            LOGGER.debug("Applying environment settings overrides: %s", sorted(from_env))
            settings = settings.merged(from_env)
        return settings

    def save(self, settings: Settings) -> Path:
        """Write ``settings`` through a temporary sibling file, then swap it in."""

        document = {**settings.to_dict(), "version": SETTINGS_VERSION}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_suffix(".tmp")
        staging.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        staging.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_file(self) -> Dict[str, Any]:
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if isinstance(document, dict):
            return document
        LOGGER.warning("Settings file %s does not contain an object", self._path)
        return {}

    @staticmethod
    def _from_payload(payload: Mapping[str, Any]) -> Settings:
        values = _known_fields(payload)
        values["preview"] = PreviewConfig.from_dict(values.get("preview"))
        try:
            return _normalized(Settings(**values))
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Settings payload contained unexpected data: %s", exc)
            return Settings()


def _known_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    names = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in names}


def _environment_overrides() -> Dict[str, Any]:
    found: Dict[str, Any] = {}
    for variable, (name, convert) in _ENV_OVERRIDES.items():
        raw = os.environ.get(variable)
        if raw is None:
            continue
        try:
            found[name] = convert(raw)
        except ValueError:
            LOGGER.warning("Ignoring environment override %s=%r", variable, raw)
    return found


def _normalized(settings: Settings) -> Settings:
    """Clamp numeric settings and fall back to defaults for unknown choices."""

    theme = settings.theme
    if theme not in _THEMES:
        LOGGER.warning("Unknown theme %r; using light", theme)
        theme = "light"
    try:
        layout = EditorLayout(settings.layout).value
    except ValueError:
        LOGGER.warning("Unknown layout %r; using split", settings.layout)
        layout = EditorLayout.SPLIT.value
    return replace(
        settings,
        history_debounce_seconds=max(0.0, float(settings.history_debounce_seconds)),
        snapshot_idle_seconds=max(0.0, float(settings.snapshot_idle_seconds)),
        snapshot_retention=max(1, int(settings.snapshot_retention)),
        history_limit=max(0, int(settings.history_limit)),
        cover_max_bytes=max(1, int(settings.cover_max_bytes)),
        ai_max_retries=max(1, int(settings.ai_max_retries)),
        theme=theme,
        layout=layout,
    )
