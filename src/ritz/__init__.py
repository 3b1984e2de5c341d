"""Ritz - resumable AI storyboard-to-montage video pipeline."""

__version__ = "0.1.0"
