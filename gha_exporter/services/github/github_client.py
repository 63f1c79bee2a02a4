"""GitHub REST client for the Actions endpoints the exporter reads."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import httpx

from gha_exporter.models import WorkflowJob

from .exceptions import (
    GithubLogsUnavailableError,
    GithubRateLimitError,
    GithubRetryableError,
)
from .github_auth import TokenSource

logger = logging.getLogger(__name__)

API_PREVIEW_HEADERS = {
    "Accept": "application/vnd.github+json",
}
JOBS_PAGE_SIZE = 100


def _next_link(response: httpx.Response) -> Optional[str]:
    link_header = response.headers.get("Link")
    if not link_header:
        return None
    for part in link_header.split(","):
        segment = part.strip()
        if segment.endswith('rel="next"'):
            return segment[segment.find("<") + 1 : segment.find(">")]
    return None


class GitHubClient:
    def __init__(
        self,
        token_source: TokenSource,
        api_url: str = "https://api.github.com",
        timeout: float = 120,
        transport: httpx.BaseTransport | None = None,
        download_transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._token_source = token_source
        self._api_url = api_url.rstrip("/")
        self._rest = httpx.Client(
            base_url=self._api_url,
            timeout=timeout,
            transport=transport or httpx.HTTPTransport(retries=3),
        )
        # Log archives live behind pre-signed URLs; never send the API token there.
        self._download = httpx.Client(
            timeout=timeout,
            transport=download_transport or httpx.HTTPTransport(retries=3),
            follow_redirects=True,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._token_source.token()}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        headers.update(API_PREVIEW_HEADERS)
        return headers

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._rest.request(method, url, headers=self._headers(), **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise GithubRetryableError(f"{method} {url} failed: {exc}") from exc

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        if response.status_code == 401:
            # A revoked or expired installation token must not be reused
            self._token_source.clear()
        if response.status_code in (403, 429) and "rate limit" in response.text.lower():
            self._handle_rate_limit(response)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GithubRetryableError(str(exc), status_code=response.status_code) from exc
        return response

    def _handle_rate_limit(self, response: httpx.Response) -> None:
        reset_header = response.headers.get("X-RateLimit-Reset")
        retry_after_header = response.headers.get("Retry-After")
        wait_seconds = 60.0

        if retry_after_header:
            try:
                wait_seconds = float(retry_after_header)
            except ValueError:
                pass
        elif reset_header:
            try:
                reset_epoch = float(reset_header)
                now_epoch = datetime.now(timezone.utc).timestamp()
                wait_seconds = max(reset_epoch - now_epoch, 1.0)
            except ValueError:
                pass

        raise GithubRateLimitError("GitHub rate limit reached", retry_after=wait_seconds)

    def _paginate(self, path: str, key: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        url: Optional[str] = path
        query = params
        while url:
            response = self._handle_response(self._send("GET", url, params=query))
            data = response.json()
            items = data.get(key, []) if isinstance(data, dict) else data
            yield from items
            url = _next_link(response)
            # The next link already carries the query string
            query = None

    def list_workflow_jobs(self, owner: str, repo: str, run_id: int) -> List[WorkflowJob]:
        """Return the jobs of a workflow run in the order GitHub lists them."""
        jobs = [
            WorkflowJob.model_validate(item)
            for item in self._paginate(
                f"/repos/{owner}/{repo}/actions/runs/{run_id}/jobs",
                "jobs",
                params={"per_page": JOBS_PAGE_SIZE},
            )
        ]
        logger.debug(
            "Fetched workflow jobs",
            extra={"owner": owner, "repo": repo, "run_id": run_id, "jobs": len(jobs)},
        )
        return jobs

    def get_job_log_url(
        self, owner: str, repo: str, job_id: int, max_redirects: int = 1
    ) -> str:
        """
        Resolve the short-lived download URL of a job's log archive.

        GitHub answers the logs endpoint with a redirect to the archive; the
        redirect target is returned instead of being followed. Up to
        ``max_redirects`` permanent redirects (renamed repositories) are
        followed on the API side first.
        """
        url = f"/repos/{owner}/{repo}/actions/jobs/{job_id}/logs"
        redirects_left = max_redirects
        while True:
            response = self._send("GET", url, follow_redirects=False)
            location = response.headers.get("Location")
            if response.status_code == 301 and location and redirects_left > 0:
                redirects_left -= 1
                url = location
                continue
            if response.status_code in (302, 303, 307) and location:
                return location
            if response.status_code in (404, 410):
                raise GithubLogsUnavailableError(
                    f"logs for job {job_id} in {owner}/{repo} are not available"
                )
            self._handle_response(response)
            raise GithubRetryableError(
                f"unexpected status {response.status_code} resolving logs for job {job_id}",
                status_code=response.status_code,
            )

    def fetch_log_archive(self, url: str) -> str:
        """Download a log archive and return it as text."""
        try:
            response = self._download.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GithubRetryableError(
                f"log archive download failed: {exc}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise GithubRetryableError(f"log archive download failed: {exc}") from exc
        # Archives start with a UTF-8 byte order mark
        return response.content.decode("utf-8-sig", errors="replace")

    def close(self) -> None:
        self._rest.close()
        self._download.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
