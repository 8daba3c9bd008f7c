"""GitHub REST access for the release lock.

``GitHubAppAuth`` signs app JWTs, ``InstallationTokenProvider`` trades them
for installation tokens, and ``GitHubClient`` performs the calls.
"""

from .auth import AuthProvider, AuthToken, GitHubAppAuth, TokenAuth
from .client import GitHubClient, GitHubClientConfig
from .exceptions import (
    GitHubAuthenticationError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
)
from .installations import InstallationTokenProvider

__all__ = [
    "AuthProvider",
    "AuthToken",
    "GitHubAppAuth",
    "GitHubAuthenticationError",
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "GitHubServerError",
    "InstallationTokenProvider",
    "TokenAuth",
]
