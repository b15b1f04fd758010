import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import patch

from app.core.constants import JOB_STATUS_SUCCESS
from app.database.unit_of_work import transaction
from app.models.import_job import ImportJob
from app.services import job_runner
from app.services.job_runner import ImportJobRunner
from app.services.uploads_service import ImportConfig, ImportJobInput
from tests.helpers import INDEX, build_workbook, media_layout, make_session_factory, product_row


class ImportJobRunnerTest(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)
        # File database: jobs run on their own threads and connections.
        self.session_factory = make_session_factory(f"sqlite:///{self.tmp_path / 'jobs.db'}")
        self.layout = media_layout(self.tmp_path / "media")
        self.workbook = build_workbook(self.tmp_path / "items.xlsx", [product_row(1), product_row(2)])

    def tearDown(self):
        self._tmp.cleanup()

    def _job_input(self, job_id=None):
        return ImportJobInput(
            file_path=str(self.workbook),
            column_mapping=INDEX,
            config=ImportConfig(batch_size=1),
            job_id=job_id,
        )

    def test_submitted_job_runs_to_completion(self):
        runner = ImportJobRunner(max_concurrent=2, session_factory=self.session_factory, layout=self.layout)

        job_id = runner.submit(self._job_input())

        self.assertTrue(runner.join(job_id, timeout=30))
        self.assertFalse(runner.is_running(job_id))
        with transaction(self.session_factory) as db:
            job = db.get(ImportJob, job_id)
        self.assertEqual(job.status, JOB_STATUS_SUCCESS)
        self.assertEqual(job.created, 2)

    def test_queued_job_can_be_cancelled(self):
        started = threading.Event()
        release = threading.Event()
        seen = {}

        def fake_import(job_input, session_factory=None, cancel_event=None, layout=None):
            if job_input.job_id == "first":
                started.set()
                release.wait(10)
            seen[job_input.job_id] = cancel_event.is_set()

        runner = ImportJobRunner(max_concurrent=1)
        with patch.object(job_runner, "import_file", side_effect=fake_import):
            runner.submit(self._job_input("first"))
            self.assertTrue(started.wait(10))
            runner.submit(self._job_input("second"))

            self.assertTrue(runner.is_running("second"))
            self.assertTrue(runner.cancel("second"))
            release.set()
            self.assertTrue(runner.join("first", timeout=10))
            self.assertTrue(runner.join("second", timeout=10))

        self.assertEqual(seen, {"first": False, "second": True})
        self.assertFalse(runner.cancel("second"))

    def test_duplicate_job_id_is_refused(self):
        release = threading.Event()

        def fake_import(job_input, **_kwargs):
            release.wait(10)

        runner = ImportJobRunner(max_concurrent=1)
        with patch.object(job_runner, "import_file", side_effect=fake_import):
            runner.submit(self._job_input("same"))
            with self.assertRaises(ValueError):
                runner.submit(self._job_input("same"))
            release.set()
            self.assertTrue(runner.join("same", timeout=10))

    def test_shutdown_cancels_running_jobs(self):
        def fake_import(job_input, session_factory=None, cancel_event=None, layout=None):
            cancel_event.wait(10)

        runner = ImportJobRunner(max_concurrent=1)
        with patch.object(job_runner, "import_file", side_effect=fake_import):
            job_id = runner.submit(self._job_input())
            runner.shutdown(timeout=10)

        self.assertFalse(runner.is_running(job_id))

    def test_unexpected_job_error_is_logged_and_released(self):
        def exploding_import(job_input, **_kwargs):
            raise RuntimeError("worker exploded")

        runner = ImportJobRunner(max_concurrent=1)
        with patch.object(job_runner, "import_file", side_effect=exploding_import):
            with self.assertLogs("app.services.job_runner", level="ERROR") as logs:
                job_id = runner.submit(self._job_input("explodes"))
                self.assertTrue(runner.join(job_id, timeout=10))

        self.assertFalse(runner.is_running(job_id))
        self.assertIn("Import job explodes failed", logs.output[0])
        # The slot was released, so a follow-up job still runs.
        with patch.object(job_runner, "import_file", return_value=None):
            follow_up = runner.submit(self._job_input("after"))
            self.assertTrue(runner.join(follow_up, timeout=10))


if __name__ == "__main__":
    unittest.main()
