"""Workspace model tracking the document the commands operate on."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .buffer import EditorSurface

__all__ = ["OpenDocument", "DocumentWorkspace"]

def _generate_document_id() -> str:
    return uuid.uuid4().hex

def _normalize_path(path: Path | str | None) -> Path | None:
    if path is None:
        return None
    return Path(path).expanduser().resolve()

@dataclass(slots=True)
class OpenDocument:
    """An editor surface plus the bookkeeping the workspace keeps for it."""

    id: str
    editor: EditorSurface
    path: Path | None = None
    title: str = field(default="Untitled")

class DocumentWorkspace:
    """Keeps the open documents and which one is active."""

    def __init__(self) -> None:
        self._documents: Dict[str, OpenDocument] = {}
        self._order: List[str] = []
        self._active_id: str | None = None

    def open(
        self,
        editor: EditorSurface,
        *,
        path: Path | str | None = None,
        make_active: bool = True,
    ) -> OpenDocument:
        """Register ``editor`` and optionally make it the active document."""

        resolved = _normalize_path(path)
        document = OpenDocument(
            id=_generate_document_id(),
            editor=editor,
            path=resolved,
            title=resolved.stem if resolved is not None else "Untitled",
        )
        self._documents[document.id] = document
        self._order.append(document.id)
        if make_active or self._active_id is None:
            self._active_id = document.id
        return document

    def close(self, document_id: str) -> None:
        if document_id not in self._documents:
            raise KeyError(f"Unknown document: {document_id}")
        del self._documents[document_id]
        self._order.remove(document_id)
        if self._active_id == document_id:
            self._active_id = self._order[-1] if self._order else None

    @property
    def active(self) -> Optional[OpenDocument]:
        if self._active_id is None:
            return None
        return self._documents.get(self._active_id)

    def active_editor(self) -> EditorSurface | None:
        """Return the active editor, or ``None`` when no document is open."""

        document = self.active
        return document.editor if document is not None else None

    def __len__(self) -> int:
        return len(self._documents)
