"""
BC_Libs - Bulk Crop Library Modules

This package contains core functionality for the Bulk Crop project,
organized into specialized sub-packages:

- GeometryLib: Selection geometry, zoom/pan viewport math and undo history
- ImageLib: Image handles, decoding and the crop render pipeline
- BatchLib: Gallery items, editor sessions and batch apply
- ExportLib: Output encoding and sequential saving
- ProjStoreLib: Geometry snapshot preset persistence
- EditorLib: PyQt5 editor window and crop canvas
"""

__version__ = "0.1.0"
