"""Remote host clients for Sitepublish."""

from .github import GithubClient, TransientRemoteError

__all__ = ["GithubClient", "TransientRemoteError"]
