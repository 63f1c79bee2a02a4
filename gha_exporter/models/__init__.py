from .workflow import (
    PullRequest,
    PullRequestRef,
    Repository,
    WorkflowJob,
    WorkflowRun,
    WorkflowRunEvent,
    WorkflowStep,
)

__all__ = [
    "PullRequest",
    "PullRequestRef",
    "Repository",
    "WorkflowJob",
    "WorkflowRun",
    "WorkflowRunEvent",
    "WorkflowStep",
]
