import asyncio
import logging
import uuid
from dataclasses import replace
from io import BytesIO
from pathlib import Path
from typing import Any, Awaitable, List, Optional

from PyQt5.QtCore import Qt
from PyQt5.QtGui import QPixmap
from PyQt5.QtWidgets import (
    QApplication,
    QCheckBox,
    QColorDialog,
    QComboBox,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QListWidget,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from BC_Libs.BatchLib.batch_apply import BatchApplyEngine
from BC_Libs.BatchLib.editor_session import EditorSession
from BC_Libs.BatchLib.gallery_models import BatchReport, GalleryItem
from BC_Libs.config import CropEngineConfig
from BC_Libs.constants import (
    ASPECT_PRESET_ORIGINAL,
    ASPECT_PRESETS,
    BACKGROUND_MODE_BLUR,
    BACKGROUND_MODE_COLOR,
    BACKGROUND_MODE_CUSTOM_IMAGE,
    DEFAULT_WINDOW_HEIGHT,
    DEFAULT_WINDOW_WIDTH,
)
from BC_Libs.EditorLib.crop_canvas import CropCanvas
from BC_Libs.ExportLib.download_driver import save_all, save_item
from BC_Libs.ExportLib.export_encoder import EncodeError, ExportFormat, resolve_format
from BC_Libs.ImageLib.image_handle import DecodeError, ImageHandle, is_supported_format
from BC_Libs.ImageLib.render_pipeline import RenderError
from BC_Libs.ProjStoreLib.snapshot_store import (
    list_preset_files,
    load_preset,
    load_preset_expansion,
    load_preset_name,
    save_preset,
)

logger = logging.getLogger(__name__)

BACKGROUND_MODE_LABELS = [
    (BACKGROUND_MODE_COLOR, "Solid Color"),
    (BACKGROUND_MODE_BLUR, "Blurred Image"),
    (BACKGROUND_MODE_CUSTOM_IMAGE, "Custom Image"),
]


class CropEditorWindow(QMainWindow):
    def __init__(self, base_dir: Optional[Path] = None, config: Optional[CropEngineConfig] = None) -> None:
        super().__init__()
        self.base_dir = base_dir or Path.cwd()
        self.config = config or CropEngineConfig()
        self.setWindowTitle("Bulk Crop")
        self.resize(DEFAULT_WINDOW_WIDTH, DEFAULT_WINDOW_HEIGHT)

        self.items: List[GalleryItem] = []
        self.current_item_index: Optional[int] = None
        self.engine = BatchApplyEngine(self.config, on_progress=self._on_batch_progress)
        self.session = EditorSession(self.config, self.engine)
        self.custom_background: Optional[Any] = None
        self._busy = False

        self._build_ui()
        self._connect_signals()
        self._refresh_controls()

    def _build_ui(self) -> None:
        central = QWidget(self)
        self.setCentralWidget(central)

        root = QHBoxLayout(central)

        controls_col = QVBoxLayout()
        canvas_col = QVBoxLayout()

        self.btn_load_images = QPushButton("Load Images")
        self.images_list = QListWidget()
        gallery_row = QHBoxLayout()
        self.btn_remove_image = QPushButton("Remove Image")
        self.btn_clear_all = QPushButton("Clear All")
        gallery_row.addWidget(self.btn_remove_image)
        gallery_row.addWidget(self.btn_clear_all)

        aspect_box = QGroupBox("Aspect Ratio")
        aspect_row = QHBoxLayout(aspect_box)
        self.aspect_buttons = {}
        for key, (_, label) in ASPECT_PRESETS.items():
            self.aspect_buttons[key] = QPushButton(label)
        self.aspect_buttons[ASPECT_PRESET_ORIGINAL] = QPushButton("Original")
        for button in self.aspect_buttons.values():
            aspect_row.addWidget(button)

        rotation_box = QGroupBox("Rotation")
        rotation_row = QHBoxLayout(rotation_box)
        self.btn_rotate_left = QPushButton("Rotate -90")
        self.btn_rotate_right = QPushButton("Rotate +90")
        self.slider_rotation = QSlider(Qt.Horizontal)
        self.slider_rotation.setRange(-179, 180)
        self.label_rotation = QLabel("0°")
        rotation_row.addWidget(self.btn_rotate_left)
        rotation_row.addWidget(self.slider_rotation)
        rotation_row.addWidget(self.label_rotation)
        rotation_row.addWidget(self.btn_rotate_right)

        view_box = QGroupBox("View")
        view_row = QHBoxLayout(view_box)
        self.btn_zoom_out = QPushButton("-")
        self.btn_zoom_in = QPushButton("+")
        self.btn_fit = QPushButton("Fit")
        self.btn_pan_mode = QPushButton("Pan")
        self.btn_pan_mode.setCheckable(True)
        self.label_zoom = QLabel("100%")
        for widget in (self.btn_zoom_out, self.label_zoom, self.btn_zoom_in, self.btn_fit, self.btn_pan_mode):
            view_row.addWidget(widget)

        history_row = QHBoxLayout()
        self.btn_undo = QPushButton("Undo")
        self.btn_redo = QPushButton("Redo")
        self.btn_reset = QPushButton("Reset")
        history_row.addWidget(self.btn_undo)
        history_row.addWidget(self.btn_redo)
        history_row.addWidget(self.btn_reset)

        expansion_box = QGroupBox("Canvas Expansion")
        expansion_col = QVBoxLayout(expansion_box)
        self.check_expand = QCheckBox("Expand canvas")
        self.check_fit_source = QCheckBox("Fit whole image inside crop")
        self.combo_background = QComboBox()
        for mode, label in BACKGROUND_MODE_LABELS:
            self.combo_background.addItem(label, mode)
        self.btn_pick_color = QPushButton("Pick Background Color")
        self.btn_pick_background = QPushButton("Choose Background Image")
        self.label_background = QLabel(f"Color: {self.session.expansion.color}")
        expansion_col.addWidget(self.check_expand)
        expansion_col.addWidget(self.check_fit_source)
        expansion_col.addWidget(self.combo_background)
        expansion_col.addWidget(self.btn_pick_color)
        expansion_col.addWidget(self.btn_pick_background)
        expansion_col.addWidget(self.label_background)

        presets_row = QHBoxLayout()
        self.btn_save_preset = QPushButton("Save Preset")
        self.btn_load_preset = QPushButton("Load Preset")
        presets_row.addWidget(self.btn_save_preset)
        presets_row.addWidget(self.btn_load_preset)

        self.combo_format = QComboBox()
        for export_format in ExportFormat:
            self.combo_format.addItem(export_format.name, export_format)
        self.combo_format.setCurrentIndex(
            list(ExportFormat).index(resolve_format(self.config.export_format))
        )

        self.btn_apply_current = QPushButton("Apply to Current")
        self.btn_apply_next = QPushButton("Apply and Next")
        self.btn_apply_all = QPushButton("Apply to All Images")
        self.btn_save_current = QPushButton("Save Current")
        self.btn_save_all = QPushButton("Save All")

        self.label_output_preview = QLabel("Output Preview")
        self.label_output_preview.setAlignment(Qt.AlignCenter)
        self.label_output_preview.setMinimumSize(240, 180)
        self.label_output_preview.setStyleSheet("border: 1px solid #888;")

        controls_col.addWidget(self.btn_load_images)
        controls_col.addWidget(QLabel("Loaded Images"))
        controls_col.addWidget(self.images_list)
        controls_col.addLayout(gallery_row)
        controls_col.addWidget(aspect_box)
        controls_col.addWidget(rotation_box)
        controls_col.addWidget(view_box)
        controls_col.addLayout(history_row)
        controls_col.addWidget(expansion_box)
        controls_col.addLayout(presets_row)
        controls_col.addWidget(QLabel("Export Format"))
        controls_col.addWidget(self.combo_format)
        controls_col.addWidget(self.btn_apply_current)
        controls_col.addWidget(self.btn_apply_next)
        controls_col.addWidget(self.btn_apply_all)
        controls_col.addWidget(self.btn_save_current)
        controls_col.addWidget(self.btn_save_all)
        controls_col.addWidget(self.label_output_preview)

        self.canvas = CropCanvas(self.session, self)
        canvas_col.addWidget(self.canvas)

        root.addLayout(controls_col, stretch=1)
        root.addLayout(canvas_col, stretch=3)

    def _connect_signals(self) -> None:
        self.btn_load_images.clicked.connect(self.load_images)
        self.images_list.currentRowChanged.connect(self.on_image_selected)
        self.btn_remove_image.clicked.connect(self.remove_selected_image)
        self.btn_clear_all.clicked.connect(self.clear_all_images)

        for key, button in self.aspect_buttons.items():
            button.clicked.connect(lambda _checked=False, preset=key: self.select_aspect(preset))

        self.btn_rotate_left.clicked.connect(lambda: self.rotate_by(-90))
        self.btn_rotate_right.clicked.connect(lambda: self.rotate_by(90))
        self.slider_rotation.sliderReleased.connect(self.on_rotation_released)
        self.slider_rotation.valueChanged.connect(lambda value: self.label_rotation.setText(f"{value}°"))

        self.btn_zoom_in.clicked.connect(self.zoom_in)
        self.btn_zoom_out.clicked.connect(self.zoom_out)
        self.btn_fit.clicked.connect(self.canvas.fit)
        self.btn_pan_mode.toggled.connect(self.session.viewport.set_pan_mode)
        self.canvas.zoomChanged.connect(self.on_zoom_changed)
        self.canvas.geometryChanged.connect(self._refresh_controls)

        self.btn_undo.clicked.connect(self.undo)
        self.btn_redo.clicked.connect(self.redo)
        self.btn_reset.clicked.connect(self.reset_geometry)

        self.check_expand.toggled.connect(self.update_expansion)
        self.check_fit_source.toggled.connect(self.canvas.set_fit_source)
        self.combo_background.currentIndexChanged.connect(self.update_expansion)
        self.btn_pick_color.clicked.connect(self.pick_background_color)
        self.btn_pick_background.clicked.connect(self.pick_background_image)

        self.btn_save_preset.clicked.connect(self.save_current_preset)
        self.btn_load_preset.clicked.connect(self.load_saved_preset)

        self.combo_format.currentIndexChanged.connect(self.on_format_changed)
        self.btn_apply_current.clicked.connect(self.apply_to_current)
        self.btn_apply_next.clicked.connect(self.apply_and_next)
        self.btn_apply_all.clicked.connect(self.apply_to_all)
        self.btn_save_current.clicked.connect(self.save_current)
        self.btn_save_all.clicked.connect(self.save_all)

    # ------------------------------------------------------------------
    # Gallery
    # ------------------------------------------------------------------

    def load_images(self) -> None:
        file_paths, _ = QFileDialog.getOpenFileNames(
            self,
            "Select Images",
            "",
            "Images (*.png *.jpg *.jpeg *.bmp *.gif *.tiff *.webp)",
        )
        if not file_paths:
            return

        skipped = []
        for path_str in file_paths:
            image_path = Path(path_str)
            if not is_supported_format(image_path):
                skipped.append(image_path.name)
                continue
            try:
                handle = ImageHandle.from_path(image_path)
            except DecodeError as e:
                logger.warning(str(e))
                skipped.append(image_path.name)
                continue
            self.items.append(GalleryItem(id=str(uuid.uuid4()), handle=handle))
            self.images_list.addItem(image_path.name)

        if skipped:
            QMessageBox.warning(self, "Skipped Files", "Could not load:\n" + "\n".join(skipped))

        if self.current_item_index is None and self.items:
            self.images_list.setCurrentRow(0)

    def on_image_selected(self, index: int) -> None:
        if index < 0 or index >= len(self.items):
            self.current_item_index = None
            self.session.close()
            self.canvas.clear()
            self._refresh_controls()
            return

        item = self.items[index]
        try:
            image = item.handle.decode()
        except DecodeError as e:
            QMessageBox.warning(self, "Decode Failed", str(e))
            return

        self.current_item_index = index
        self.session.switch_to(item, (self.canvas.width(), self.canvas.height()))
        self.canvas.set_image(image)
        self._refresh_controls()

    def _current_item(self) -> Optional[GalleryItem]:
        if self.current_item_index is None:
            return None
        return self.items[self.current_item_index]

    def remove_selected_image(self) -> None:
        row = self.images_list.currentRow()
        if row < 0 or row >= len(self.items) or self._busy:
            return

        was_open = row == self.current_item_index
        self.session.remove_item(self.items, self.items[row].id)

        if self.current_item_index is not None and row < self.current_item_index:
            self.current_item_index -= 1

        self.images_list.blockSignals(True)
        self.images_list.takeItem(row)
        if self.current_item_index is not None and not was_open:
            self.images_list.setCurrentRow(self.current_item_index)
        self.images_list.blockSignals(False)

        if was_open:
            self.current_item_index = None
            self.canvas.clear()
            if self.items:
                next_row = min(row, len(self.items) - 1)
                self.images_list.blockSignals(True)
                self.images_list.setCurrentRow(next_row)
                self.images_list.blockSignals(False)
                self.on_image_selected(next_row)
        self._refresh_controls()

    def clear_all_images(self) -> None:
        if not self.items or self._busy:
            return

        answer = QMessageBox.question(self, "Clear All", f"Remove all {len(self.items)} images?")
        if answer != QMessageBox.Yes:
            return

        self.session.clear_all(self.items)
        self.images_list.blockSignals(True)
        self.images_list.clear()
        self.images_list.blockSignals(False)
        self.current_item_index = None
        self.canvas.clear()
        self._refresh_controls()

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def select_aspect(self, key: str) -> None:
        if not self.session.is_open:
            return
        self.session.set_aspect_preset(key)
        self._refresh_controls()

    def rotate_by(self, delta: int) -> None:
        if not self.session.is_open:
            return
        self.session.rotate_by(delta)
        self._refresh_controls()

    def on_rotation_released(self) -> None:
        if not self.session.is_open:
            return
        self.session.set_rotation(self.slider_rotation.value())
        self._refresh_controls()

    def zoom_in(self) -> None:
        self.session.viewport.zoom_in()
        self.on_zoom_changed(self.session.viewport.zoom)

    def zoom_out(self) -> None:
        self.session.viewport.zoom_out()
        self.on_zoom_changed(self.session.viewport.zoom)

    def on_zoom_changed(self, zoom: float) -> None:
        self.label_zoom.setText(f"{zoom * 100:.0f}%")
        self.canvas.update()

    def undo(self) -> None:
        if self.session.is_open:
            self.session.undo()
            self._refresh_controls()

    def redo(self) -> None:
        if self.session.is_open:
            self.session.redo()
            self._refresh_controls()

    def reset_geometry(self) -> None:
        if self.session.is_open:
            self.session.reset()
            self._refresh_controls()

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def update_expansion(self) -> None:
        mode = self.combo_background.currentData()
        enabled = self.check_expand.isChecked()
        if enabled and mode == BACKGROUND_MODE_CUSTOM_IMAGE and self.custom_background is None:
            QMessageBox.information(self, "Background Image", "Choose a background image first.")
            self.check_expand.setChecked(False)
            return

        self.session.expansion = replace(
            self.session.expansion,
            enabled=enabled,
            background_mode=mode,
            custom_image=self.custom_background,
        )
        self._refresh_controls()

    def _show_expansion(self, expansion) -> None:
        """Mirror expansion options in the widgets without re-triggering updates."""
        modes = [mode for mode, _ in BACKGROUND_MODE_LABELS]
        for widget in (self.check_expand, self.combo_background):
            widget.blockSignals(True)
        self.check_expand.setChecked(expansion.enabled)
        self.combo_background.setCurrentIndex(modes.index(expansion.background_mode))
        for widget in (self.check_expand, self.combo_background):
            widget.blockSignals(False)
        self.label_background.setText(f"Color: {expansion.color}")

    def pick_background_color(self) -> None:
        color = QColorDialog.getColor(parent=self, title="Pick background color")
        if not color.isValid():
            return

        new_color = (color.red(), color.green(), color.blue(), 255)
        self.session.expansion = replace(self.session.expansion, color=new_color)
        self.label_background.setText(f"Color: {new_color}")
        self.canvas.update()

    def pick_background_image(self) -> None:
        path_str, _ = QFileDialog.getOpenFileName(
            self,
            "Select Background Image",
            "",
            "Images (*.png *.jpg *.jpeg *.bmp *.webp)",
        )
        if not path_str:
            return

        try:
            self.custom_background = ImageHandle.from_path(Path(path_str)).decode()
        except DecodeError as e:
            QMessageBox.warning(self, "Decode Failed", str(e))
            return

        self.label_background.setText(f"Background: {Path(path_str).name}")
        self.update_expansion()

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    def save_current_preset(self) -> None:
        if not self.session.is_open:
            return

        name, ok = QInputDialog.getText(self, "Save Preset", "Preset name:")
        if not ok or not name.strip():
            return

        path = save_preset(self.base_dir, name.strip(), self.session.snapshot, self.session.expansion)
        self._show_info("Preset Saved", f"Saved preset to {path.name}")

    def load_saved_preset(self) -> None:
        if not self.session.is_open:
            return

        preset_files = list_preset_files(self.base_dir)
        if not preset_files:
            self._show_info("No Presets", "No saved presets were found.")
            return

        names = [load_preset_name(path) for path in preset_files]
        name, ok = QInputDialog.getItem(self, "Load Preset", "Preset:", names, 0, False)
        if not ok:
            return

        preset_path = preset_files[names.index(name)]
        try:
            snapshot = load_preset(preset_path)
            expansion = load_preset_expansion(preset_path, self.custom_background)
        except (OSError, ValueError) as e:
            QMessageBox.warning(self, "Invalid Preset", str(e))
            return

        # The snapshot is measured against the preset's own selection frame
        if expansion is not None:
            self._show_expansion(expansion)
            self.session.expansion = expansion
            if expansion.background_mode == BACKGROUND_MODE_CUSTOM_IMAGE and not expansion.enabled:
                self._show_info("Background Image",
                                "This preset uses a custom background. Choose an image to enable it.")
        self.session.load_snapshot(snapshot)
        self._refresh_controls()

    # ------------------------------------------------------------------
    # Apply and save
    # ------------------------------------------------------------------

    def on_format_changed(self) -> None:
        self.engine.export_format = self.combo_format.currentData()

    def _run_blocking(self, coro: Awaitable[Any]) -> Any:
        """Run one engine coroutine to completion with the actions disabled."""
        self._set_busy(True)
        QApplication.setOverrideCursor(Qt.WaitCursor)
        try:
            return asyncio.run(coro)
        finally:
            QApplication.restoreOverrideCursor()
            self._set_busy(False)

    def apply_to_current(self) -> bool:
        """Commit the open image. Returns True when the crop was stored."""
        item = self._current_item()
        if item is None or self._busy:
            return False

        try:
            self._run_blocking(self.session.commit())
        except (DecodeError, RenderError, EncodeError) as e:
            QMessageBox.warning(self, "Crop Failed", str(e))
            return False

        self._mark_cropped(self.current_item_index)
        self._refresh_output_preview()
        return True

    def apply_and_next(self) -> None:
        if not self.apply_to_current():
            return

        if self.current_item_index is not None and self.current_item_index + 1 < len(self.items):
            self.images_list.setCurrentRow(self.current_item_index + 1)

    def apply_to_all(self) -> None:
        if not self.items or not self.session.is_open or self._busy:
            return

        report = self._run_blocking(self.session.apply_to_all(self.items))

        for index, item in enumerate(self.items):
            if item.is_cropped:
                self._mark_cropped(index)
        self._refresh_output_preview()
        self._show_report("Apply to All", report)

    def save_current(self) -> None:
        item = self._current_item()
        if item is None or self._busy:
            return

        folder = QFileDialog.getExistingDirectory(self, "Select Save Directory")
        if not folder:
            return

        try:
            path = self._run_blocking(save_item(
                item,
                Path(folder),
                fmt=self.combo_format.currentData(),
                prefix=self.config.output_prefix,
                quality=self.config.jpeg_quality,
            ))
        except (DecodeError, EncodeError, ValueError, OSError) as e:
            QMessageBox.warning(self, "Save Failed", str(e))
            return

        self.statusBar().showMessage(f"Saved {path.name}")

    def save_all(self) -> None:
        if not self.items or self._busy:
            return

        folder = QFileDialog.getExistingDirectory(self, "Select Save Directory")
        if not folder:
            return

        report = self._run_blocking(save_all(
            self.items,
            Path(folder),
            fmt=self.combo_format.currentData(),
            prefix=self.config.output_prefix,
            delay=self.config.download_delay,
            quality=self.config.jpeg_quality,
        ))

        self._show_report("Save All", report)

    def _on_batch_progress(self, current: int, total: int, name: str) -> None:
        self.statusBar().showMessage(f"Cropping {current}/{total}: {name}")
        QApplication.processEvents()

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def _mark_cropped(self, index: int) -> None:
        list_item = self.images_list.item(index)
        if list_item is not None:
            list_item.setText(f"✓ {self.items[index].name}")

    def _set_busy(self, busy: bool) -> None:
        # Clicks queued during a run must not start a second event loop
        self._busy = busy
        self.images_list.setEnabled(not busy)
        if busy:
            for button in (self.btn_load_images, self.btn_remove_image, self.btn_clear_all,
                           self.btn_apply_current, self.btn_apply_next, self.btn_apply_all,
                           self.btn_save_current, self.btn_save_all):
                button.setEnabled(False)
        else:
            self._refresh_controls()

    def _refresh_controls(self) -> None:
        is_open = self.session.is_open
        for button in (self.btn_rotate_left, self.btn_rotate_right, self.btn_reset,
                       self.btn_apply_current, self.btn_apply_next, self.btn_apply_all,
                       self.btn_save_preset, self.btn_load_preset, self.btn_save_current):
            button.setEnabled(is_open)
        self.slider_rotation.setEnabled(is_open)
        self.btn_undo.setEnabled(self.session.can_undo)
        self.btn_redo.setEnabled(self.session.can_redo)
        self.btn_load_images.setEnabled(True)
        self.btn_save_all.setEnabled(bool(self.items))
        self.btn_remove_image.setEnabled(bool(self.items))
        self.btn_clear_all.setEnabled(bool(self.items))

        if is_open:
            self.slider_rotation.blockSignals(True)
            self.slider_rotation.setValue(self.session.rotation)
            self.slider_rotation.blockSignals(False)
            self.label_rotation.setText(f"{self.session.rotation}°")

        self._refresh_output_preview()
        self.canvas.update()

    def _refresh_output_preview(self) -> None:
        item = self._current_item()
        if item is None or item.output_bitmap is None:
            self.label_output_preview.setText("Output Preview")
            return
        self._set_preview(self.label_output_preview, item.output_bitmap)

    def _set_preview(self, label: QLabel, image: Any) -> None:
        pixmap = QPixmap()
        if not pixmap.loadFromData(self._to_png_bytes(image), "PNG"):
            label.setText("Preview failed")
            return

        scaled = pixmap.scaled(
            label.size(),
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
        label.setPixmap(scaled)

    def _to_png_bytes(self, image: Any) -> bytes:
        buffer = BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def _show_report(self, title: str, report: BatchReport) -> None:
        self.statusBar().showMessage(report.summary())
        if report.ok:
            self._show_info(title, f"Done: {report.summary()}")
            return

        lines = [f"{error.stage}: {error.message}" for error in report.errors]
        QMessageBox.warning(self, title, report.summary() + "\n\n" + "\n".join(lines))

    def _show_info(self, title: str, message: str) -> None:
        QMessageBox.information(self, title, message)
