"""GitHub Actions workflow payload models."""

from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from gha_exporter.core.exceptions import MalformedEventError


class GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class PullRequestRef(GitHubModel):
    ref: Optional[str] = None
    sha: Optional[str] = None


class PullRequest(GitHubModel):
    url: Optional[str] = None
    head: PullRequestRef = Field(default_factory=PullRequestRef)
    base: PullRequestRef = Field(default_factory=PullRequestRef)


class WorkflowStep(GitHubModel):
    name: str
    number: int
    status: Optional[str] = None
    conclusion: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class WorkflowJob(GitHubModel):
    id: int
    name: str
    run_id: Optional[int] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    html_url: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    labels: List[str] = Field(default_factory=list)
    runner_group_id: Optional[int] = None
    runner_group_name: Optional[str] = None
    runner_name: Optional[str] = None
    steps: List[WorkflowStep] = Field(default_factory=list)


class WorkflowRun(GitHubModel):
    id: int
    name: str
    workflow_id: Optional[int] = None
    run_number: Optional[int] = None
    run_attempt: Optional[int] = None
    html_url: Optional[str] = None
    created_at: Optional[datetime] = None
    run_started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    event: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    head_branch: Optional[str] = None
    head_sha: Optional[str] = None
    pull_requests: List[PullRequest] = Field(default_factory=list)

    @property
    def pull_request(self) -> Optional[PullRequest]:
        """The associated pull request; GitHub lists at most one that matters."""
        return self.pull_requests[0] if self.pull_requests else None


class Repository(GitHubModel):
    full_name: str


class WorkflowRunEvent(GitHubModel):
    action: Optional[str] = None
    repository: Repository
    workflow_run: Optional[WorkflowRun] = None

    def owner_and_repo(self) -> Tuple[str, str]:
        parts = self.repository.full_name.split("/")
        if len(parts) != 2 or not all(parts):
            raise MalformedEventError(
                f"repository full name {self.repository.full_name!r} is not owner/repo"
            )
        return parts[0], parts[1]
