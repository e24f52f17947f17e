"""
Constants and configuration values for Bulk Crop.

This module centralizes all constant values, magic numbers, and
configuration settings used throughout the crop engine.
"""

# Geometry constants
NORMALIZED_MIN = 0.0
NORMALIZED_MAX = 100.0
NORMALIZED_TOLERANCE = 1e-6
DEFAULT_RECT_PERCENT = 90.0
ASPECT_EPSILON = 0.001
ASPECT_MATCH_TOLERANCE = 1e-6
PIXEL_ROUNDING_GUARD = 1e-6
MIN_PIXEL_SIZE = 1
MIN_NORMALIZED_SIZE = 1e-3

# Zoom/pan constants
MIN_ZOOM = 0.001
MAX_ZOOM = 20.0
ZOOM_STEP = 1.25
FIT_MARGIN = 0.9
MIN_PINCH_DISTANCE = 1.0

# History constants
HISTORY_CAPACITY = 50

# Rendering constants
BACKGROUND_MODE_COLOR = "color"
BACKGROUND_MODE_BLUR = "blur"
BACKGROUND_MODE_CUSTOM_IMAGE = "custom_image"
DEFAULT_BACKGROUND_COLOR = (255, 255, 255, 255)
DEFAULT_BLUR_RADIUS = 40.0
DEFAULT_BLUR_DARKEN = 0.6
DEFAULT_CANVAS_MARGIN = 0.25
MAX_CANVAS_MARGIN = 2.0
TRANSPARENT = (0, 0, 0, 0)
WORKING_MODE = "RGBA"

# Export constants
DEFAULT_JPEG_QUALITY = 95
MATTE_COLOR = (0, 0, 0)
PDF_RESOLUTION = 72.0
OUTPUT_FILE_PREFIX = "cropped"
DEFAULT_EXPORT_FORMAT = "jpeg"
DOWNLOAD_DELAY_SECONDS = 0.2
BATCH_ITEM_DELAY_SECONDS = 0.0

# Aspect presets: key -> (ratio or None, display name)
ASPECT_PRESETS = {
    "1:1": (1.0, "Square (1:1)"),
    "16:9": (16 / 9, "Landscape (16:9)"),
    "9:16": (9 / 16, "Portrait (9:16)"),
    "free": (None, "Free"),
}
ASPECT_PRESET_ORIGINAL = "original"

# Preset store constants
PRESETS_DIR_NAME = "Presets"
PRESET_EXTENSION = ".bcrop"
SCHEMA_VERSION = 1

# Safe filename characters
SAFE_FILENAME_CHARS = "-_"
FILENAME_REPLACEMENT_CHAR = "_"

# Snapshot field names
FIELD_SCHEMA_VERSION = "schema_version"
FIELD_NAME = "name"
FIELD_CREATED_AT = "created_at"
FIELD_SNAPSHOT = "snapshot"
FIELD_EXPANSION = "expansion"
FIELD_RECT = "rect"
FIELD_ASPECT = "aspect"
FIELD_ROTATION = "rotation"
FIELD_X = "x"
FIELD_Y = "y"
FIELD_WIDTH = "width"
FIELD_HEIGHT = "height"

# Supported file formats
SUPPORTED_STANDARD_IMAGES = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".webp"}

# UI constants
DEFAULT_WINDOW_WIDTH = 1400
DEFAULT_WINDOW_HEIGHT = 850
SELECTION_BORDER_COLOR = "#6366f1"
SELECTION_SHADE_COLOR = (15, 23, 42, 150)
EXPANSION_FRAME_COLOR = "#1e293b"
CANVAS_BACKGROUND_COLOR = "#020617"
HANDLE_SIZE = 10
