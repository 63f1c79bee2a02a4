import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from gha_exporter.core.exceptions import LogShippingError, MissingFieldError
from gha_exporter.models import WorkflowJob, WorkflowRun
from gha_exporter.services.github.exceptions import GithubLogsUnavailableError
from gha_exporter.services.logs import (
    Configured,
    Disabled,
    LogShipper,
    build_labels,
    parse_log_timestamp,
)

T0 = 1577836800 * 1_000_000_000  # 2020-01-01T00:00:00Z
JOB_START = datetime(2019, 12, 31, 23, 59, 0, tzinfo=timezone.utc)


def make_run():
    return WorkflowRun(id=99, name="CI", status="completed")


def make_job(**overrides):
    data = {"id": 7, "name": "build", "started_at": JOB_START, "completed_at": JOB_START}
    data.update(overrides)
    return WorkflowJob(**data)


class TestParseLogTimestamp(unittest.TestCase):
    def test_parses_github_prefix(self):
        self.assertEqual(parse_log_timestamp("2020-01-01T00:00:00.0000000Z line1"), T0)

    def test_keeps_100ns_precision(self):
        self.assertEqual(parse_log_timestamp("2020-01-01T00:00:01.1234567Z x"), T0 + 1_123_456_700)

    def test_rejects_lines_without_prefix(self):
        self.assertIsNone(parse_log_timestamp("line1-continued"))
        self.assertIsNone(parse_log_timestamp("short"))
        self.assertIsNone(parse_log_timestamp(""))

    def test_rejects_other_layouts(self):
        self.assertIsNone(parse_log_timestamp("2020-01-01T00:00:00Z line1"))
        self.assertIsNone(parse_log_timestamp("2020-01-01 00:00:00.0000000Z line1"))

    def test_rejects_impossible_dates(self):
        self.assertIsNone(parse_log_timestamp("2020-02-30T00:00:00.0000000Z x"))


class TestBuildLabels(unittest.TestCase):
    def test_label_keys_and_values(self):
        labels = build_labels("octo", "repo", make_run(), make_job(), "abc")

        self.assertEqual(
            labels,
            {
                "trace_id": "abc",
                "repo_owner": "octo",
                "repo_name": "repo",
                "workflow_name": "CI",
                "workflow_id": "99",
                "workflow_job_name": "build",
                "workflow_job_id": "7",
            },
        )


class TestLogShipper(unittest.TestCase):
    def setUp(self):
        self.source = MagicMock()
        self.source.get_job_log_url.return_value = "https://logs.example/archive"
        self.sink = MagicMock()
        self.shipper = LogShipper(self.source, Configured(self.sink))

    def pushed(self):
        return [(c.args[1], c.args[2]) for c in self.sink.push_line.call_args_list]

    def test_continuation_inherits_previous_timestamp(self):
        self.source.fetch_log_archive.return_value = (
            "2020-01-01T00:00:00.0000000Z line1\n"
            "line1-continued\n"
            "2020-01-01T00:00:01.0000000Z line2\n"
        )

        shipped = self.shipper.ship_logs("octo", "repo", make_run(), make_job(), "abc")

        self.assertEqual(shipped, 3)
        self.assertEqual(
            self.pushed(),
            [
                (T0, "2020-01-01T00:00:00.0000000Z line1"),
                (T0, "line1-continued"),
                (T0 + 1_000_000_000, "2020-01-01T00:00:01.0000000Z line2"),
            ],
        )

    def test_requests_current_attempt_url(self):
        self.source.fetch_log_archive.return_value = ""

        self.shipper.ship_logs("octo", "repo", make_run(), make_job(), "abc")

        self.source.get_job_log_url.assert_called_once_with("octo", "repo", 7, max_redirects=1)
        self.source.fetch_log_archive.assert_called_once_with("https://logs.example/archive")

    def test_empty_lines_are_skipped(self):
        self.source.fetch_log_archive.return_value = (
            "\n2020-01-01T00:00:00.0000000Z a\n\n\n2020-01-01T00:00:00.0000000Z b\n"
        )

        shipped = self.shipper.ship_logs("octo", "repo", make_run(), make_job(), "abc")

        self.assertEqual(shipped, 2)
        self.assertEqual([line for _, line in self.pushed()], [
            "2020-01-01T00:00:00.0000000Z a",
            "2020-01-01T00:00:00.0000000Z b",
        ])

    def test_leading_continuation_uses_job_start(self):
        self.source.fetch_log_archive.return_value = "no timestamp here\n"

        self.shipper.ship_logs("octo", "repo", make_run(), make_job(), "abc")

        self.assertEqual(self.pushed(), [(T0 - 60 * 1_000_000_000, "no timestamp here")])

    def test_lines_carry_job_labels(self):
        self.source.fetch_log_archive.return_value = "2020-01-01T00:00:00.0000000Z a"

        self.shipper.ship_logs("octo", "repo", make_run(), make_job(), "abc")

        labels = self.sink.push_line.call_args.args[0]
        self.assertEqual(labels["trace_id"], "abc")
        self.assertEqual(labels["workflow_job_id"], "7")

    def test_source_failure_is_wrapped(self):
        self.source.get_job_log_url.side_effect = GithubLogsUnavailableError("gone")

        with self.assertRaises(LogShippingError) as ctx:
            self.shipper.ship_logs("octo", "repo", make_run(), make_job(), "abc")
        self.assertEqual(ctx.exception.job_id, 7)
        self.assertIsInstance(ctx.exception.__cause__, GithubLogsUnavailableError)
        self.sink.push_line.assert_not_called()

    def test_missing_job_start(self):
        with self.assertRaises(MissingFieldError):
            self.shipper.ship_logs("octo", "repo", make_run(), make_job(started_at=None), "abc")
        self.source.get_job_log_url.assert_not_called()

    def test_disabled_sink_is_a_no_op(self):
        shipper = LogShipper(self.source, Disabled())

        self.assertFalse(shipper.enabled)
        self.assertEqual(shipper.ship_logs("octo", "repo", make_run(), make_job(), "abc"), 0)
        self.source.get_job_log_url.assert_not_called()
        self.source.fetch_log_archive.assert_not_called()


if __name__ == "__main__":
    unittest.main()
