from typing import Optional, Union


class GithubError(Exception):
    pass


class GithubConfigurationError(GithubError):
    pass


class GithubRateLimitError(GithubError):
    def __init__(self, message: str, retry_after: Union[int, float, None] = None):
        super().__init__(message)
        self.retry_after = retry_after


class GithubRetryableError(GithubError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GithubLogsUnavailableError(GithubError):
    """The job log archive has expired or was never produced."""
