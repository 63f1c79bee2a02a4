from .exceptions import (
    GithubConfigurationError,
    GithubError,
    GithubLogsUnavailableError,
    GithubRateLimitError,
    GithubRetryableError,
)
from .github_auth import InstallationTokenSource, StaticTokenSource, TokenSource
from .github_client import GitHubClient

__all__ = [
    "GitHubClient",
    "GithubConfigurationError",
    "GithubError",
    "GithubLogsUnavailableError",
    "GithubRateLimitError",
    "GithubRetryableError",
    "InstallationTokenSource",
    "StaticTokenSource",
    "TokenSource",
]
