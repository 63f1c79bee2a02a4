import unittest
from datetime import datetime, timezone

from pydantic import ValidationError

from gha_exporter.core.exceptions import MalformedEventError
from gha_exporter.models import WorkflowJob, WorkflowRunEvent


class TestWorkflowRunEvent(unittest.TestCase):
    def make_event(self, full_name="octo/repo", **run):
        payload = {
            "action": "completed",
            "repository": {"full_name": full_name, "private": False},
            "workflow_run": {"id": 1, "name": "CI", "status": "completed", **run},
            "sender": {"login": "octocat"},
        }
        return WorkflowRunEvent.model_validate(payload)

    def test_owner_and_repo(self):
        self.assertEqual(self.make_event().owner_and_repo(), ("octo", "repo"))

    def test_malformed_repository_names(self):
        for full_name in ("octo", "octo/", "/repo", "octo/repo/extra"):
            with self.assertRaises(MalformedEventError, msg=full_name):
                self.make_event(full_name=full_name).owner_and_repo()

    def test_timestamps_are_timezone_aware(self):
        event = self.make_event(created_at="2024-03-01T10:00:00Z")

        self.assertEqual(
            event.workflow_run.created_at, datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        )
        self.assertIsNone(event.workflow_run.updated_at)

    def test_pull_request_is_first_listed(self):
        event = self.make_event(
            pull_requests=[
                {"url": "u1", "head": {"ref": "feature", "sha": "1"}, "base": {"ref": "main", "sha": "2"}},
                {"url": "u2"},
            ]
        )

        self.assertEqual(event.workflow_run.pull_request.url, "u1")
        self.assertIsNone(self.make_event().workflow_run.pull_request)

    def test_run_identity_is_required(self):
        with self.assertRaises(ValidationError):
            WorkflowRunEvent.model_validate(
                {"repository": {"full_name": "octo/repo"}, "workflow_run": {"name": "CI"}}
            )


class TestWorkflowJob(unittest.TestCase):
    def test_parses_api_payload(self):
        job = WorkflowJob.model_validate(
            {
                "id": 7,
                "run_id": 1,
                "name": "build",
                "status": "completed",
                "conclusion": "success",
                "started_at": "2024-03-01T10:00:05Z",
                "completed_at": "2024-03-01T10:04:50Z",
                "labels": ["self-hosted", "linux"],
                "runner_name": "runner-1",
                "runner_group_id": None,
                "steps": [
                    {"name": "Set up job", "number": 1, "status": "completed", "conclusion": "success"}
                ],
            }
        )

        self.assertEqual(job.labels, ["self-hosted", "linux"])
        self.assertEqual(job.steps[0].number, 1)
        self.assertIsNone(job.steps[0].started_at)
        self.assertIsNone(job.runner_group_id)

    def test_step_number_is_required(self):
        with self.assertRaises(ValidationError):
            WorkflowJob.model_validate({"id": 7, "name": "build", "steps": [{"name": "x"}]})


if __name__ == "__main__":
    unittest.main()
