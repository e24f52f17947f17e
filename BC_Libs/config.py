"""
Engine configuration for Bulk Crop.

Groups the tunable thresholds of the crop engine in one object so callers can
override the defaults from ``constants`` without touching module globals.

Classes:
    CropEngineConfig: Tunable thresholds for geometry, zoom, history and export
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict

from BC_Libs.constants import (
    ASPECT_EPSILON,
    BATCH_ITEM_DELAY_SECONDS,
    DEFAULT_EXPORT_FORMAT,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_RECT_PERCENT,
    DOWNLOAD_DELAY_SECONDS,
    FIT_MARGIN,
    HISTORY_CAPACITY,
    MAX_ZOOM,
    MIN_ZOOM,
    OUTPUT_FILE_PREFIX,
    ZOOM_STEP,
)


@dataclass
class CropEngineConfig:
    """Configuration for the crop engine.

    Attributes:
        aspect_epsilon: Tolerance under which an aspect equals the native aspect
        default_rect_percent: Size of the default constrained rect (0-100]
        min_zoom: Lower zoom clamp (must be > 0)
        max_zoom: Upper zoom clamp (must be >= min_zoom)
        zoom_step: Factor applied per wheel notch or zoom button press
        fit_margin: Fraction of the viewport used when fitting an image (0-1]
        history_capacity: Maximum number of undo entries
        export_format: Default export format key ('jpeg', 'png', 'pdf')
        jpeg_quality: JPEG quality 1-100
        output_prefix: Prefix used in output filenames
        download_delay: Seconds to wait between sequential saves
        batch_item_delay: Seconds to wait between batch items
    """
    aspect_epsilon: float = ASPECT_EPSILON
    default_rect_percent: float = DEFAULT_RECT_PERCENT
    min_zoom: float = MIN_ZOOM
    max_zoom: float = MAX_ZOOM
    zoom_step: float = ZOOM_STEP
    fit_margin: float = FIT_MARGIN
    history_capacity: int = HISTORY_CAPACITY
    export_format: str = DEFAULT_EXPORT_FORMAT
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    output_prefix: str = OUTPUT_FILE_PREFIX
    download_delay: float = DOWNLOAD_DELAY_SECONDS
    batch_item_delay: float = BATCH_ITEM_DELAY_SECONDS

    def __post_init__(self):
        """Validate configuration ranges."""
        if self.aspect_epsilon < 0:
            raise ValueError(f"aspect_epsilon must be >= 0, got {self.aspect_epsilon}")

        if not (0 < self.default_rect_percent <= 100):
            raise ValueError(
                f"default_rect_percent must be 0 < p <= 100, got {self.default_rect_percent}"
            )

        if self.min_zoom <= 0:
            raise ValueError(f"min_zoom must be > 0, got {self.min_zoom}")

        if self.max_zoom < self.min_zoom:
            raise ValueError(
                f"max_zoom ({self.max_zoom}) must be >= min_zoom ({self.min_zoom})"
            )

        if self.zoom_step <= 1.0:
            raise ValueError(f"zoom_step must be > 1.0, got {self.zoom_step}")

        if not (0 < self.fit_margin <= 1.0):
            raise ValueError(f"fit_margin must be 0 < m <= 1.0, got {self.fit_margin}")

        if self.history_capacity < 1:
            raise ValueError(f"history_capacity must be >= 1, got {self.history_capacity}")

        if not (1 <= self.jpeg_quality <= 100):
            raise ValueError(f"jpeg_quality must be 1-100, got {self.jpeg_quality}")

        if self.download_delay < 0 or self.batch_item_delay < 0:
            raise ValueError("delays must be >= 0")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CropEngineConfig":
        """Create from dictionary, ignoring unknown keys."""
        filtered = {k: v for k, v in data.items()
                    if k in cls.__dataclass_fields__}
        return cls(**filtered)
