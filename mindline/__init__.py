"""Mindline: keyboard-driven mind maps with an editable outline."""

__version__ = "1.0.0"
__app_id__ = "io.github.mindline.Mindline"
