"""UI components for Sitepublish."""

from .progress import ProgressView, render_snapshot

__all__ = ["ProgressView", "render_snapshot"]
