import argparse
import logging
import sys
from pathlib import Path

from PyQt5.QtWidgets import QApplication

from BC_Libs.config import CropEngineConfig
from BC_Libs.EditorLib.crop_editor_window import CropEditorWindow


def main() -> None:
    parser = argparse.ArgumentParser(description="Crop, rotate and expand many images with one selection.")
    parser.add_argument("--base-dir", type=Path, default=Path.cwd(), help="Directory holding the Presets folder")
    parser.add_argument("--format", choices=["jpeg", "png", "pdf"], default="jpeg", help="Default export format")
    parser.add_argument("--quality", type=int, default=95, help="JPEG quality 1-100")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args, qt_args = parser.parse_known_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = CropEngineConfig(export_format=args.format, jpeg_quality=args.quality)

    app = QApplication([sys.argv[0]] + qt_args)
    window = CropEditorWindow(base_dir=args.base_dir, config=config)
    window.show()
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
