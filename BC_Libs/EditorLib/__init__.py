"""
EditorLib - PyQt5 crop editor

This module provides the crop canvas widget and the main editor window.
Import the submodules directly; they require PyQt5.
"""
