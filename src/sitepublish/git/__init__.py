"""Git working copy management for Sitepublish."""

from .controller import GitRepoController, PushTarget

__all__ = ["GitRepoController", "PushTarget"]
