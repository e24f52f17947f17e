"""
Batch Crop Examples

Demonstrates replaying one normalized selection across images of different
sizes, rotation around the crop center, canvas expansion and saving the
results.
"""

import asyncio
import sys
import tempfile
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from PIL import Image
from BC_Libs.BatchLib import BatchApplyEngine, EditorSession, GalleryItem
from BC_Libs.ExportLib import save_all
from BC_Libs.GeometryLib import NormalizedRect, GeometrySnapshot, to_pixel_rect
from BC_Libs.ImageLib import ExpansionOptions, ImageHandle


def _gallery():
    sizes = [(4000, 3000), (1000, 500), (640, 480)]
    items = []
    for index, size in enumerate(sizes):
        image = Image.new("RGB", size, (40 * index, 120, 200))
        handle = ImageHandle.from_image(image, name=f"photo_{index}.jpg")
        items.append(GalleryItem(id=f"item-{index}", handle=handle))
    return items


def example_pixel_rects():
    """Example: the same normalized rect maps to each image's own pixels."""
    print("=" * 60)
    print("Example 1: One Selection, Many Sizes")
    print("=" * 60)

    rect = NormalizedRect(25, 25, 50, 50)
    for item in _gallery():
        print(f"  {item.name} {item.handle.native_size} -> {to_pixel_rect(rect, item.handle).to_dict()}")
    print()


async def example_apply_to_all():
    """Example: edit one item, apply the crop to the whole gallery."""
    print("=" * 60)
    print("Example 2: Apply to All")
    print("=" * 60)

    items = _gallery()
    session = EditorSession()
    session.open(items[0])
    session.set_aspect(16 / 9)
    session.rotate_by(15)
    session.expansion = ExpansionOptions(enabled=True, background_mode="blur")

    report = await session.apply_to_all(items)
    print(f"  {report.summary()}")
    for item in items:
        print(f"  {item.output_artifact.filename}: {item.output_bitmap.size}")
    print()
    return items


async def example_save_all(items):
    """Example: write every output sequentially into a folder."""
    print("=" * 60)
    print("Example 3: Save All")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmpdir:
        report = await save_all(items, Path(tmpdir), delay=0.05)
        print(f"  {report.summary()}")
        for path in sorted(Path(tmpdir).iterdir()):
            print(f"  {path.name} ({path.stat().st_size} bytes)")

        # Saving again refuses to overwrite
        report = await save_all(items, Path(tmpdir), delay=0)
        print(f"  Second run: {report.summary()}")
    print()


async def example_progress_callbacks():
    """Example: progress reporting from the batch engine."""
    print("=" * 60)
    print("Example 4: Progress Callbacks")
    print("=" * 60)

    engine = BatchApplyEngine(
        on_progress=lambda current, total, name: print(f"  [{current}/{total}] {name}")
    )
    snapshot = GeometrySnapshot(rect=NormalizedRect(10, 10, 80, 80))
    await engine.apply(snapshot, _gallery())
    print()


async def main():
    example_pixel_rects()
    items = await example_apply_to_all()
    await example_save_all(items)
    await example_progress_callbacks()


if __name__ == "__main__":
    asyncio.run(main())
