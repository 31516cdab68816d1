"""Command-line runner that applies AIssist commands to note files."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import AIClient, ClientSettings
from .chat.commands import ChatBackend, ChatCommandRunner
from .editor.buffer import TextBuffer
from .editor.workspace import DocumentWorkspace
from .services.settings import Settings, SettingsStore, redact_secret
from .utils import logging as logging_utils
from .utils.file_io import read_text, write_text

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_COMMAND_CHOICES = ("prompt", "chat", "title")


class StreamNotifier:
    """Writes notices to a text stream, stderr by default."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)
        destination = self._stream or sys.stderr
        destination.write(f"{message}\n")


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure logging for a command run."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``aissist`` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = _env_flag("AISSIST_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("AISSIST_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0
    if not args.command or not args.path:
        parser.error("a command and a note path are required unless --dump-settings is given")

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    try:
        selection = _parse_selection(args.select) if args.select else None
    except ValueError as exc:
        parser.error(str(exc))
    return asyncio.run(
        run_file_command(
            args.command,
            Path(args.path).expanduser(),
            settings,
            cursor=args.cursor,
            selection=selection,
        )
    )


async def run_file_command(
    command: str,
    path: Path,
    settings: Settings,
    *,
    cursor: int | None = None,
    selection: tuple[int, int] | None = None,
    client: ChatBackend | None = None,
    notifier: StreamNotifier | None = None,
    stdout: TextIO | None = None,
) -> int:
    """Run ``command`` on the note at ``path`` and save it when it changed.

    Returns a process exit code: ``0`` on success, ``1`` when the command
    stopped with a notice.
    """

    note = read_text(path)
    buffer = TextBuffer(note.text, cursor=cursor)
    if selection is not None:
        buffer.select(*selection)
    workspace = DocumentWorkspace()
    document = workspace.open(buffer, path=path)

    owned_client: AIClient | None = None
    if client is None:
        owned_client = AIClient(ClientSettings.from_settings(settings))
        client = owned_client
    active_notifier = notifier or StreamNotifier()
    runner = ChatCommandRunner(client, settings, notifier=active_notifier)
    editor = workspace.active_editor()

    try:
        if command == "title":
            title = await runner.generate_title(editor)
            if title is None:
                return 1
            (stdout or sys.stdout).write(f"{title}\n")
            return 0
        if command == "prompt":
            outcome = await runner.run_prompt(editor)
        elif command == "chat":
            outcome = await runner.run_chat(editor)
        else:
            raise ValueError(f"Unknown command: {command!r}")
    finally:
        workspace.close(document.id)
        if owned_client is not None:
            await owned_client.aclose()

    if buffer.get_value() != note.text:
        write_text(path, buffer.get_value(), encoding=note.encoding, newline=note.newline)
        _LOGGER.info("Saved %s after %s (%s)", path, command, outcome.phase.value)
    return 0 if outcome.ok else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aissist",
        description="Run an AIssist chat command against a note file.",
    )
    parser.add_argument("command", nargs="?", choices=_COMMAND_CHOICES, help="Command to run.")
    parser.add_argument("path", nargs="?", help="Note file to read and update in place.")
    parser.add_argument(
        "--cursor",
        type=int,
        metavar="OFFSET",
        help="Character offset of the cursor (defaults to the end of the note).",
    )
    parser.add_argument(
        "--select",
        metavar="START:END",
        help="Select the character range START:END before running the command.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.aissist/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override stored settings for this run (repeatable).",
    )
    return parser


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_selection(raw: str) -> tuple[int, int]:
    start, sep, end = raw.partition(":")
    if not sep:
        raise ValueError("--select must use START:END syntax")
    try:
        return int(start, 10), int(end, 10)
    except ValueError as exc:
        raise ValueError(f"--select offsets must be integers: {raw!r}") from exc


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, fields[key].type), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    if raw_value.lower() in {"none", "null"} and type(None) in get_args(annotation):
        return None
    target = _resolve_annotation(annotation)
    if target is str or target is Any:
        return raw_value
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if target is dict:
        try:
            payload = json.loads(raw_value or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return payload
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return dict
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    return args[0] if args else origin


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    meta = {
        "path": str(store.path),
        "key_path": str(store.vault.key_path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": sorted(name for name in os.environ if name.startswith("AISSIST_")),
    }
    json.dump({"settings": payload, "meta": meta}, destination, indent=2)
    destination.write("\n")


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
