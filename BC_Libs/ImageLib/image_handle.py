"""
Image handles for Bulk Crop.

An ImageHandle is the engine's reference to one source image: its native pixel
size, the size it is currently shown at, and an opaque source (an in-memory
Pillow image, encoded bytes, or a file path). Creating a handle only reads the
image header; pixels are decoded on demand, one image at a time, so a batch
never holds more than one decoded source bitmap.

Classes:
    ImageHandle: Reference to a source image and its native/display size
    DecodeError: Source bytes could not be turned into a bitmap

Functions:
    decode_bitmap: Decode a handle's pixels without blocking the event loop
    get_supported_image_formats: Sorted list of supported file extensions
    is_supported_format: Check a path's extension
"""

import asyncio
import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from PIL import Image, ImageOps

from BC_Libs.constants import SUPPORTED_STANDARD_IMAGES, WORKING_MODE

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, Path, Any]

# Errors Pillow raises for truncated, unknown or oversized images
_DECODE_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)

EXIF_ORIENTATION_TAG = 0x0112
# Orientations 5-8 store the picture rotated by a quarter turn
TRANSPOSED_ORIENTATIONS = (5, 6, 7, 8)


class DecodeError(OSError):
    """Raised when a source image cannot be decoded into a bitmap."""


def get_supported_image_formats() -> List[str]:
    """
    Get list of supported standard image formats.

    Returns:
        List of file extensions (e.g., ['.bmp', '.gif', ...])
    """
    return sorted(SUPPORTED_STANDARD_IMAGES)


def is_supported_format(file_path: Path) -> bool:
    """
    Check if a file path has a supported image extension.

    Args:
        file_path: Path to the file

    Returns:
        True if file extension is supported
    """
    return Path(file_path).suffix.lower() in SUPPORTED_STANDARD_IMAGES


def _open_source(source: ImageSource) -> Any:
    if isinstance(source, (bytes, bytearray)):
        return Image.open(BytesIO(source))
    if isinstance(source, (str, Path)):
        return Image.open(Path(source))
    return source


def _oriented_size(image: Any) -> Tuple[int, int]:
    """Size of an image as shown upright, honoring its EXIF orientation."""
    width, height = image.size
    if not hasattr(image, "getexif"):
        return (width, height)
    if image.getexif().get(EXIF_ORIENTATION_TAG) in TRANSPOSED_ORIENTATIONS:
        return (height, width)
    return (width, height)


@dataclass
class ImageHandle:
    """Reference to one decoded (or decodable) source image.

    Attributes:
        name: Original file name, used for output naming
        native_width: Upright width of the source bitmap in pixels
        native_height: Upright height of the source bitmap in pixels
        display_width: Width the image is shown at on screen (default native)
        display_height: Height the image is shown at on screen (default native)
        source: Pillow image, encoded bytes or a file path
    """
    name: str
    native_width: int
    native_height: int
    display_width: Optional[float] = None
    display_height: Optional[float] = None
    source: Optional[ImageSource] = field(default=None, repr=False)

    def __post_init__(self):
        """Validate dimensions and default the display size."""
        for attr in ("native_width", "native_height"):
            value = getattr(self, attr)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{attr} must be a positive int, got {value!r}")

        if self.display_width is None:
            self.display_width = float(self.native_width)
        if self.display_height is None:
            self.display_height = float(self.native_height)

        if self.display_width <= 0 or self.display_height <= 0:
            raise ValueError(
                f"display size must be positive, got "
                f"({self.display_width}, {self.display_height})"
            )

    @property
    def native_size(self):
        return (self.native_width, self.native_height)

    @property
    def native_aspect(self) -> float:
        return self.native_width / self.native_height

    @property
    def stem(self) -> str:
        return Path(self.name).stem

    def set_display_size(self, width: float, height: float) -> None:
        """Record the size the image is currently shown at."""
        if width <= 0 or height <= 0:
            raise ValueError(f"display size must be positive, got ({width}, {height})")
        self.display_width = float(width)
        self.display_height = float(height)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_image(cls, image: Any, name: str = "image.png") -> "ImageHandle":
        """Wrap an in-memory Pillow image."""
        if not hasattr(image, "size") or not hasattr(image, "convert"):
            raise TypeError(f"Expected PIL Image, got {type(image)}")
        width, height = _oriented_size(image)
        return cls(name=name, native_width=width, native_height=height, source=image)

    @classmethod
    def from_source(cls, source: ImageSource, name: str) -> "ImageHandle":
        """
        Create a handle from encoded bytes or a path, reading only the header.

        The size is the upright size: a photo whose EXIF orientation turns it
        a quarter turn reports its width and height swapped.

        Raises:
            DecodeError: If the header cannot be read
        """
        try:
            with _open_source(source) as header:
                width, height = _oriented_size(header)
        except _DECODE_ERRORS as e:
            raise DecodeError(f"Failed to read image header of {name}: {str(e)}") from e
        return cls(name=name, native_width=width, native_height=height, source=source)

    @classmethod
    def from_bytes(cls, data: bytes, name: str) -> "ImageHandle":
        return cls.from_source(bytes(data), name)

    @classmethod
    def from_path(cls, path: Path) -> "ImageHandle":
        path = Path(path)
        return cls.from_source(path, path.name)

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self) -> Any:
        """
        Decode the full bitmap, turned upright according to its EXIF orientation.

        Returns:
            Fully loaded PIL Image in RGBA mode

        Raises:
            DecodeError: If the source is missing or cannot be decoded
        """
        if self.source is None:
            raise DecodeError(f"Image {self.name} has no source to decode")

        try:
            image = _open_source(self.source)
            image.load()
            image = ImageOps.exif_transpose(image)
            if image.mode != WORKING_MODE:
                image = image.convert(WORKING_MODE)
        except _DECODE_ERRORS as e:
            raise DecodeError(f"Failed to decode image {self.name}: {str(e)}") from e

        if image.size != self.native_size:
            logger.warning(
                f"Decoded size {image.size} of {self.name} differs from header {self.native_size}"
            )
        return image


async def decode_bitmap(handle: ImageHandle) -> Any:
    """
    Decode a handle's pixels in a worker thread.

    Raises:
        DecodeError: If the image cannot be decoded
    """
    logger.debug(f"Decoding {handle.name}")
    return await asyncio.to_thread(handle.decode)
