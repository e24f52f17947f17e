"""
Gallery data models for Bulk Crop.

Classes:
    GalleryItem: One image in the gallery and its committed crop output
    ItemError: A per-item failure with the stage it happened in
    BatchReport: Aggregate result of a batch apply or download run
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from BC_Libs.GeometryLib.geometry_models import GeometrySnapshot
from BC_Libs.ImageLib.image_handle import ImageHandle

STAGE_DECODE = "decode"
STAGE_RENDER = "render"
STAGE_ENCODE = "encode"
STAGE_SAVE = "save"

ERROR_STAGES = (STAGE_DECODE, STAGE_RENDER, STAGE_ENCODE, STAGE_SAVE)


@dataclass
class GalleryItem:
    """One gallery image.

    Attributes:
        id: Unique identifier within the gallery
        handle: Source image reference
        saved_snapshot: Geometry last committed for this item (None if never cropped)
        output_bitmap: Rendered PIL Image of the last successful commit
        output_artifact: Encoded ExportArtifact of the last successful commit
    """
    id: str
    handle: ImageHandle
    saved_snapshot: Optional[GeometrySnapshot] = None
    output_bitmap: Optional[Any] = field(default=None, repr=False)
    output_artifact: Optional[Any] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.handle.name

    @property
    def is_cropped(self) -> bool:
        return self.output_artifact is not None

    def store_output(self, snapshot: GeometrySnapshot, bitmap: Any, artifact: Any) -> None:
        """Record a successful commit. All three fields change together."""
        self.saved_snapshot = snapshot
        self.output_bitmap = bitmap
        self.output_artifact = artifact

    def clear_output(self) -> None:
        self.saved_snapshot = None
        self.output_bitmap = None
        self.output_artifact = None


@dataclass(frozen=True)
class ItemError:
    """Failure of a single item.

    Attributes:
        item_id: GalleryItem id
        stage: 'decode', 'render', 'encode' or 'save'
        message: Human readable cause
    """
    item_id: str
    stage: str
    message: str

    def __post_init__(self):
        if self.stage not in ERROR_STAGES:
            raise ValueError(
                f"Unknown stage: {self.stage}. Valid stages: {', '.join(ERROR_STAGES)}"
            )

    def to_dict(self) -> Dict[str, str]:
        return {"item_id": self.item_id, "stage": self.stage, "message": self.message}


@dataclass
class BatchReport:
    """Aggregate outcome of processing several items."""
    processed: int = 0
    succeeded: int = 0
    errors: List[ItemError] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors

    def record_success(self) -> None:
        self.processed += 1
        self.succeeded += 1

    def record_error(self, item_id: str, stage: str, message: str) -> ItemError:
        error = ItemError(item_id=item_id, stage=stage, message=message)
        self.processed += 1
        self.errors.append(error)
        return error

    def summary(self) -> str:
        return f"{self.succeeded}/{self.processed} succeeded, {self.failed} failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "errors": [error.to_dict() for error in self.errors],
        }
