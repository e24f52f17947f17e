"""
BatchLib - Gallery items, batch apply and the editor session

This module provides the gallery data model, the engine that replays one
crop across images of different sizes, and the per-item editor session.
"""

from BC_Libs.BatchLib.gallery_models import (
    BatchReport,
    GalleryItem,
    ItemError,
)
from BC_Libs.BatchLib.batch_apply import BatchApplyEngine
from BC_Libs.BatchLib.editor_session import EditorSession, SessionClosedError

__all__ = [
    "BatchReport",
    "GalleryItem",
    "ItemError",
    "BatchApplyEngine",
    "EditorSession",
    "SessionClosedError",
]
