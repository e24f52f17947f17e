"""
Geometry data models for Bulk Crop.

This module defines the value types shared by the geometry engine, the render
pipeline and the batch engine. All of them validate their fields when they are
constructed, so an instance that exists is always usable.

Classes:
    NormalizedRect: Selection as percentages of the displayed image (0-100)
    PixelRect: Selection in integer source-pixel units
    GeometrySnapshot: Rect, aspect constraint and rotation; the unit of undo/redo
    Placement: Where the source image sits inside an output surface

Functions:
    normalize_rotation: Map any angle in degrees to the (-180, 180] range

Type Aliases:
    AspectConstraint: Optional positive width/height ratio (None = free)
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from BC_Libs.constants import (
    FIELD_ASPECT,
    FIELD_HEIGHT,
    FIELD_RECT,
    FIELD_ROTATION,
    FIELD_WIDTH,
    FIELD_X,
    FIELD_Y,
    NORMALIZED_MAX,
    NORMALIZED_MIN,
    NORMALIZED_TOLERANCE,
)

AspectConstraint = Optional[float]


def _require_finite(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    return float(value)


def normalize_rotation(degrees: float) -> int:
    """
    Normalize a rotation angle to integer degrees in (-180, 180].

    Args:
        degrees: Any angle in degrees (fractions are rounded)

    Returns:
        Equivalent integer angle, e.g. 360 -> 0, 270 -> -90, -180 -> 180
    """
    value = int(round(_require_finite("rotation", degrees))) % 360
    if value > 180:
        value -= 360
    return value


@dataclass(frozen=True)
class NormalizedRect:
    """Crop selection as percentages of the displayed image's bounding box.

    Attributes:
        x: Left edge (0-100)
        y: Top edge (0-100)
        width: Width (0 < width <= 100 - x)
        height: Height (0 < height <= 100 - y)
    """
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        """Validate rect bounds."""
        for name in (FIELD_X, FIELD_Y, FIELD_WIDTH, FIELD_HEIGHT):
            _require_finite(name, getattr(self, name))

        low = NORMALIZED_MIN - NORMALIZED_TOLERANCE
        high = NORMALIZED_MAX + NORMALIZED_TOLERANCE

        if not (low <= self.x <= high and low <= self.y <= high):
            raise ValueError(f"x/y must be within 0-100, got ({self.x}, {self.y})")

        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"width/height must be > 0, got ({self.width}, {self.height})"
            )

        if self.x + self.width > high or self.y + self.height > high:
            raise ValueError(f"Rect extends past 100%: {self}")

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            FIELD_X: self.x,
            FIELD_Y: self.y,
            FIELD_WIDTH: self.width,
            FIELD_HEIGHT: self.height,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NormalizedRect":
        """Create from dictionary."""
        try:
            return cls(
                x=data[FIELD_X],
                y=data[FIELD_Y],
                width=data[FIELD_WIDTH],
                height=data[FIELD_HEIGHT],
            )
        except KeyError as e:
            raise ValueError(f"Rect is missing field {e}")

    @classmethod
    def full(cls) -> "NormalizedRect":
        """The whole image."""
        return cls(NORMALIZED_MIN, NORMALIZED_MIN, NORMALIZED_MAX, NORMALIZED_MAX)


@dataclass(frozen=True)
class PixelRect:
    """Crop selection in source-pixel units.

    The origin goes negative, and the far edge past the image size, only when
    canvas expansion lets the selection reach beyond the source.

    Attributes:
        x: Left edge in pixels
        y: Top edge in pixels
        width: Width in pixels (>= 1)
        height: Height in pixels (>= 1)
    """
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        """Validate pixel rect values."""
        for name in (FIELD_X, FIELD_Y, FIELD_WIDTH, FIELD_HEIGHT):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an int, got {type(value).__name__}")

        if self.width < 1 or self.height < 1:
            raise ValueError(
                f"width/height must be >= 1, got ({self.width}, {self.height})"
            )

    def lies_within(self, width: int, height: int) -> bool:
        """Whether the rect is inside an image of ``width x height``."""
        return (self.x >= 0 and self.y >= 0
                and self.x + self.width <= width and self.y + self.height <= height)

    @property
    def box(self) -> Tuple[int, int, int, int]:
        """(left, upper, right, lower) box as used by Image.crop."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary."""
        return {
            FIELD_X: self.x,
            FIELD_Y: self.y,
            FIELD_WIDTH: self.width,
            FIELD_HEIGHT: self.height,
        }


@dataclass(frozen=True)
class GeometrySnapshot:
    """A complete selection state: the unit of undo/redo and of batch replay.

    Attributes:
        rect: Selection in normalized coordinates
        aspect: Optional positive width/height ratio (None = free)
        rotation: Integer degrees in (-180, 180], pivoting on the rect center
    """
    rect: NormalizedRect
    aspect: AspectConstraint = None
    rotation: int = 0

    def __post_init__(self):
        """Validate snapshot fields."""
        if not isinstance(self.rect, NormalizedRect):
            raise TypeError(f"rect must be a NormalizedRect, got {type(self.rect).__name__}")

        if self.aspect is not None:
            aspect = _require_finite(FIELD_ASPECT, self.aspect)
            if aspect <= 0:
                raise ValueError(f"aspect must be > 0, got {self.aspect}")

        if isinstance(self.rotation, bool) or not isinstance(self.rotation, int):
            raise TypeError(f"rotation must be an int, got {type(self.rotation).__name__}")

        if not (-180 < self.rotation <= 180):
            raise ValueError(f"rotation must be in (-180, 180], got {self.rotation}")

    def with_rect(self, rect: NormalizedRect) -> "GeometrySnapshot":
        return GeometrySnapshot(rect=rect, aspect=self.aspect, rotation=self.rotation)

    def with_rotation(self, rotation: float) -> "GeometrySnapshot":
        return GeometrySnapshot(
            rect=self.rect, aspect=self.aspect, rotation=normalize_rotation(rotation)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the geometry exchange format."""
        return {
            FIELD_RECT: self.rect.to_dict(),
            FIELD_ASPECT: self.aspect,
            FIELD_ROTATION: self.rotation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeometrySnapshot":
        """
        Create from the geometry exchange format.

        Rotation is normalized on the way in so snapshots written by other
        tools (e.g. rotation 270) are accepted.

        Raises:
            ValueError: If a field is missing or out of range
        """
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot must be a dict, got {type(data).__name__}")

        if FIELD_RECT not in data:
            raise ValueError("Snapshot is missing 'rect'")

        rect_data = data[FIELD_RECT]
        if not isinstance(rect_data, dict):
            raise ValueError("Snapshot 'rect' must be a dict")

        aspect = data.get(FIELD_ASPECT)
        return cls(
            rect=NormalizedRect.from_dict(rect_data),
            aspect=None if aspect is None else float(aspect),
            rotation=normalize_rotation(data.get(FIELD_ROTATION, 0)),
        )


@dataclass(frozen=True)
class Placement:
    """Where the source image lands inside the unrotated output surface.

    A source pixel ``p`` is drawn at ``(offset_x + scale * p.x,
    offset_y + scale * p.y)`` before rotation is applied about the output
    center. Computed once by the view layer and passed to the renderer.

    Attributes:
        offset_x: Output-surface x of the source image's left edge
        offset_y: Output-surface y of the source image's top edge
        scale: Source-to-output scale factor (> 0)
    """
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0

    def __post_init__(self):
        """Validate placement values."""
        _require_finite("offset_x", self.offset_x)
        _require_finite("offset_y", self.offset_y)
        if _require_finite("scale", self.scale) <= 0:
            raise ValueError(f"scale must be > 0, got {self.scale}")

    @classmethod
    def for_crop(cls, pixel_rect: PixelRect) -> "Placement":
        """Placement that makes the output surface show exactly ``pixel_rect``."""
        return cls(offset_x=float(-pixel_rect.x), offset_y=float(-pixel_rect.y), scale=1.0)

    def is_identity_crop(self, pixel_rect: PixelRect) -> bool:
        return self == Placement.for_crop(pixel_rect)
