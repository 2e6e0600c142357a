from __future__ import annotations

import io
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from pos_ingest.ingest_files import main
from pos_ingest.services.ingest_service import IngestFailure, IngestResult


class IngestFilesCliTests(unittest.TestCase):
    @patch('pos_ingest.ingest_files.create_tables')
    @patch('pos_ingest.ingest_files.ingest_many')
    def test_successful_run_exits_zero(self, ingest_many_mock, create_tables_mock) -> None:
        ingest_many_mock.return_value = [
            IngestResult(record_kind='CPJ', file_name='CPJ_1.xml', processed_count=3, skipped_count=1),
        ]
        output = io.StringIO()

        with redirect_stdout(output):
            exit_code = main(['CPJ_1.xml', '--deadline-seconds', '30', '-q'])

        self.assertEqual(exit_code, 0)
        ingest_many_mock.assert_called_once_with(['CPJ_1.xml'], deadline_seconds=30.0)
        create_tables_mock.assert_not_called()
        self.assertIn('CPJ_1.xml: kind=CPJ processed=3 errors=0 skipped=1', output.getvalue())

    @patch('pos_ingest.ingest_files.create_tables')
    @patch('pos_ingest.ingest_files.ingest_many')
    def test_failures_and_record_errors_exit_non_zero(self, ingest_many_mock, create_tables_mock) -> None:
        ingest_many_mock.return_value = [
            IngestFailure(file_name='CPJ_bad.xml', error='Malformed XML', record_kind='CPJ'),
            IngestResult(record_kind='SUM', file_name='SUM_1.xml', processed_count=1, error_count=1, timed_out=True),
        ]
        output = io.StringIO()

        with redirect_stdout(output):
            exit_code = main(['--create-tables', '-q', 'CPJ_bad.xml', 'SUM_1.xml'])

        self.assertEqual(exit_code, 1)
        create_tables_mock.assert_called_once_with()
        self.assertIn('CPJ_bad.xml: FAILED (Malformed XML)', output.getvalue())
        self.assertIn('timed_out=true', output.getvalue())

    def test_verbose_and_quiet_are_exclusive(self) -> None:
        with redirect_stdout(io.StringIO()), patch('sys.stderr', io.StringIO()):
            with self.assertRaises(SystemExit):
                main(['-v', '-q', 'CPJ_1.xml'])


if __name__ == '__main__':
    unittest.main()
