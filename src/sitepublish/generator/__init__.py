"""Site generators for Sitepublish."""

from .directory import DirectorySiteGenerator

__all__ = ["DirectorySiteGenerator"]
