import threading
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from gha_exporter.core.exceptions import LogShippingError, MissingFieldError
from gha_exporter.models import WorkflowJob, WorkflowRunEvent
from gha_exporter.services.github.exceptions import GithubRetryableError
from gha_exporter.workers import HandoffQueue, IngestionWorker

START = datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


def make_event(full_name="octo/repo", run_id=1):
    return WorkflowRunEvent.model_validate(
        {
            "action": "completed",
            "repository": {"full_name": full_name},
            "workflow_run": {
                "id": run_id,
                "name": "CI",
                "status": "completed",
                "created_at": START.isoformat(),
                "updated_at": START.isoformat(),
            },
        }
    )


def make_job(job_id):
    return WorkflowJob(id=job_id, name=f"job-{job_id}", started_at=START, completed_at=START)


class TestIngestionWorker(unittest.TestCase):
    def setUp(self):
        self.queue = HandoffQueue()
        self.source = MagicMock()
        self.builder = MagicMock()
        self.shipper = MagicMock()
        self.shipper.enabled = True
        self.worker = IngestionWorker(
            self.queue, self.source, self.builder, self.shipper, poll_interval=0.05
        )

    def tearDown(self):
        self.worker.stop(timeout=2)

    def test_traces_run_then_ships_each_job(self):
        jobs = [make_job(1), make_job(2)]
        self.source.list_workflow_jobs.return_value = jobs
        self.builder.build_trace.return_value = {1: "t1", 2: "t2"}
        event = make_event()

        self.assertTrue(self.worker.process_event(event))

        self.source.list_workflow_jobs.assert_called_once_with("octo", "repo", 1)
        self.builder.build_trace.assert_called_once_with("octo", "repo", event.workflow_run, jobs)
        shipped = [(c.args[3].id, c.args[4]) for c in self.shipper.ship_logs.call_args_list]
        self.assertEqual(shipped, [(1, "t1"), (2, "t2")])

    def test_job_failure_does_not_abort_siblings(self):
        self.source.list_workflow_jobs.return_value = [make_job(1), make_job(2)]
        self.builder.build_trace.return_value = {1: "t1", 2: "t2"}
        self.shipper.ship_logs.side_effect = [LogShippingError("gone", job_id=1), 10]

        self.assertTrue(self.worker.process_event(make_event()))
        self.assertEqual(self.shipper.ship_logs.call_count, 2)

    def test_fetch_failure_aborts_run(self):
        self.source.list_workflow_jobs.side_effect = GithubRetryableError("boom")

        self.assertFalse(self.worker.process_event(make_event()))
        self.builder.build_trace.assert_not_called()
        self.shipper.ship_logs.assert_not_called()

    def test_missing_field_aborts_run(self):
        self.source.list_workflow_jobs.return_value = [make_job(1)]
        self.builder.build_trace.side_effect = MissingFieldError("workflow_run.updated_at")

        self.assertFalse(self.worker.process_event(make_event()))
        self.shipper.ship_logs.assert_not_called()

    def test_malformed_repository_name(self):
        self.assertFalse(self.worker.process_event(make_event(full_name="no-slash")))
        self.source.list_workflow_jobs.assert_not_called()

    def test_disabled_shipper_skips_logs(self):
        self.shipper.enabled = False
        self.source.list_workflow_jobs.return_value = [make_job(1)]
        self.builder.build_trace.return_value = {1: "t1"}

        self.assertTrue(self.worker.process_event(make_event()))
        self.shipper.ship_logs.assert_not_called()

    def test_loop_survives_unexpected_errors(self):
        processed = threading.Event()
        self.source.list_workflow_jobs.side_effect = [RuntimeError("unexpected"), []]
        self.builder.build_trace.side_effect = lambda *args: processed.set() or {}

        self.worker.start()
        self.queue.put(make_event(run_id=1), timeout=2)
        self.queue.put(make_event(run_id=2), timeout=2)

        self.assertTrue(processed.wait(2))
        self.assertTrue(self.worker.is_alive)

    def test_stop_ends_the_loop(self):
        self.worker.start()
        self.assertTrue(self.worker.is_alive)

        self.worker.stop(timeout=2)

        self.assertFalse(self.worker.is_alive)
        self.assertTrue(self.queue.closed)

    def test_start_twice_fails(self):
        self.worker.start()
        with self.assertRaises(RuntimeError):
            self.worker.start()


if __name__ == "__main__":
    unittest.main()
