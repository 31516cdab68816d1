"""Configuration resolver layering note metadata over stored settings.

Each request parameter is described by a :class:`FieldSpec`. A single routine
walks the table and, per field, takes the first value found in the note's
metadata block, the stored :class:`~aissist.services.settings.Settings`, or
the compiled defaults. Persistent fields that were missing from the metadata
are written back so the note records the configuration it was run with.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Mapping, Sequence

from ..ai.prompts import DEFAULT_SYSTEM_MESSAGE
from ..documents.metadata import read_metadata, upsert_property
from ..editor.buffer import EditorSurface
from ..errors import NoActiveDocument
from .settings import Settings

__all__ = [
    "METADATA_PREFIX",
    "FieldSpec",
    "FIELD_SPECS",
    "COMPILED_DEFAULTS",
    "EffectiveConfig",
    "resolve_request_config",
]

LOGGER = logging.getLogger(__name__)
METADATA_PREFIX = "aissist_openai_"
_MISSING = object()


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    normalized = str(value).strip().lower()
    if normalized in {"true", "yes", "on", "1"}:
        return True
    if normalized in {"false", "no", "off", "0", ""}:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Not an integer: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Not an integer: {value!r}")
        return int(value)
    return int(str(value).strip(), 10) if isinstance(value, str) else int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    return float(value)


def _to_text(value: Any) -> str:
    return str(value)


def _to_optional_text(value: Any) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


@dataclass(slots=True, frozen=True)
class FieldSpec:
    """Describe how one request parameter is resolved.

    ``setting`` names the :class:`Settings` attribute that forms the stored
    tier, or ``None`` when the field goes straight from metadata to the
    compiled default. ``persist`` marks fields written back to the note.
    """

    name: str
    key: str
    coerce: Callable[[Any], Any]
    setting: str | None = None
    persist: bool = False


FIELD_SPECS: tuple[FieldSpec, ...] = (
    FieldSpec("model", f"{METADATA_PREFIX}chat_model", _to_text, setting="model", persist=True),
    FieldSpec(
        "max_tokens",
        f"{METADATA_PREFIX}chat_max_tokens",
        _to_int,
        setting="max_output_tokens",
        persist=True,
    ),
    FieldSpec(
        "temperature",
        f"{METADATA_PREFIX}chat_temperature",
        _to_float,
        setting="temperature",
        persist=True,
    ),
    FieldSpec("system_message", f"{METADATA_PREFIX}chat_system_message", _to_text, persist=True),
    FieldSpec("top_p", f"{METADATA_PREFIX}chat_top_p", _to_float),
    FieldSpec("frequency_penalty", f"{METADATA_PREFIX}chat_frequency_penalty", _to_float),
    FieldSpec("presence_penalty", f"{METADATA_PREFIX}chat_presence_penalty", _to_float),
    FieldSpec("n", f"{METADATA_PREFIX}chat_n", _to_int),
    FieldSpec("store", f"{METADATA_PREFIX}store", _to_bool),
    FieldSpec("vector_store_id", f"{METADATA_PREFIX}vector_store_id", _to_optional_text),
)

_DEFAULT_SETTINGS = Settings()

COMPILED_DEFAULTS: Mapping[str, Any] = {
    "model": _DEFAULT_SETTINGS.model,
    "max_tokens": _DEFAULT_SETTINGS.max_output_tokens,
    "temperature": _DEFAULT_SETTINGS.temperature,
    "system_message": DEFAULT_SYSTEM_MESSAGE,
    "top_p": 1.0,
    "frequency_penalty": 0.0,
    "presence_penalty": 0.0,
    "n": 1,
    "store": False,
    "vector_store_id": None,
}


@dataclass(slots=True, frozen=True)
class EffectiveConfig:
    """Resolved parameters for one chat completion request."""

    model: str
    max_tokens: int
    temperature: float
    system_message: str
    top_p: float
    frequency_penalty: float
    presence_penalty: float
    n: int
    store: bool = False
    vector_store_id: str | None = None

    def request_params(self) -> Dict[str, Any]:
        """Return the keyword arguments for ``chat.completions.create``."""

        params: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
            "n": self.n,
        }
        if self.store:
            params["store"] = True
            if self.vector_store_id:
                params["metadata"] = {"vector_store_id": self.vector_store_id}
        return params

    def as_dict(self) -> Dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


def resolve_request_config(
    editor: EditorSurface | None,
    settings: Settings,
    defaults: Mapping[str, Any] | None = None,
    *,
    specs: Sequence[FieldSpec] = FIELD_SPECS,
    persist: bool = True,
) -> EffectiveConfig:
    """Resolve every field and write back persistent fallbacks.

    Raises :class:`NoActiveDocument` when ``editor`` is ``None``. Existing
    metadata values are never overwritten, so a second call on the same note
    performs no writes. With ``persist=False`` nothing is written at all.
    """

    if editor is None:
        raise NoActiveDocument()
    compiled = dict(COMPILED_DEFAULTS)
    if defaults:
        compiled.update(defaults)
    metadata = read_metadata(editor.get_value())

    resolved: Dict[str, Any] = {}
    pending_writes: list[tuple[str, Any]] = []
    for spec in specs:
        value, source = _resolve_field(spec, metadata, settings, compiled)
        resolved[spec.name] = value
        if persist and spec.persist and source != "metadata" and spec.key not in metadata:
            pending_writes.append((spec.key, value))

    for key, value in pending_writes:
        upsert_property(editor, key, value)
    if pending_writes:
        LOGGER.debug("Recorded %s fallback value(s) in note metadata", len(pending_writes))
    return EffectiveConfig(**resolved)


def _resolve_field(
    spec: FieldSpec,
    metadata: Mapping[str, Any],
    settings: Settings,
    compiled: Mapping[str, Any],
) -> tuple[Any, str]:
    raw = metadata.get(spec.key, _MISSING)
    if raw is not _MISSING and raw is not None:
        try:
            return spec.coerce(raw), "metadata"
        except (TypeError, ValueError):
            LOGGER.warning("Ignoring invalid metadata value %s=%r", spec.key, raw)
    if spec.setting is not None:
        stored = getattr(settings, spec.setting, None)
        if stored is not None:
            try:
                return spec.coerce(stored), "settings"
            except (TypeError, ValueError):
                LOGGER.warning("Ignoring invalid stored setting %s=%r", spec.setting, stored)
    default = compiled.get(spec.name)
    return (spec.coerce(default) if default is not None else None), "default"
