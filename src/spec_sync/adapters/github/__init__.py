"""GitHub issues backend (``gh`` CLI)."""

from .adapter import GitHubAdapter
from .client import GitHubClient, GitHubCLIError

__all__ = ["GitHubAdapter", "GitHubCLIError", "GitHubClient"]
