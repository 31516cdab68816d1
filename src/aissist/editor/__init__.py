"""Editing-surface contract, in-memory buffer and workspace."""

from .buffer import EditorSurface, Position, TextBuffer
from .workspace import DocumentWorkspace, OpenDocument

__all__ = ["EditorSurface", "Position", "TextBuffer", "DocumentWorkspace", "OpenDocument"]
