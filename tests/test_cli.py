# tests/test_cli.py

"""Tests for the command-line entry point and runner commands."""

import unittest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

from ec_index.cli import runner
from ec_index.services.pipeline import BenchmarkRun, RunSummary
from main import main


def _summary(error: str | None = None) -> RunSummary:
    return RunSummary(
        started_at=datetime(2026, 3, 1, 3, 0),
        finished_at=datetime(2026, 3, 1, 3, 5),
        runs=[BenchmarkRun(code="ECI-SMP-300", error=error)],
    )


@patch("main.setup_logging")
class TestMain(unittest.TestCase):
    """Flag routing in main()."""

    @patch("ec_index.cli.runner.list_benchmarks", return_value=0)
    def test_list(self, mock_list: MagicMock, _log: MagicMock) -> None:
        self.assertEqual(main(["--list"]), 0)
        mock_list.assert_called_once()

    @patch("ec_index.cli.runner.run_collection", return_value=0)
    def test_all(self, mock_run: MagicMock, _log: MagicMock) -> None:
        self.assertEqual(main(["--all"]), 0)
        mock_run.assert_called_once_with(None)

    @patch("ec_index.cli.runner.run_collection", return_value=1)
    def test_benchmark(self, mock_run: MagicMock, _log: MagicMock) -> None:
        self.assertEqual(main(["-b", "ECI-SMP-300"]), 1)
        mock_run.assert_called_once_with("ECI-SMP-300")

    @patch("ec_index.cli.runner.run_export", return_value=0)
    def test_export_with_only(self, mock_export: MagicMock, _log: MagicMock) -> None:
        main(["--export", "--only", "ECI-SUP-VIT"])
        mock_export.assert_called_once_with("ECI-SUP-VIT")

    @patch("ec_index.cli.runner.run_reaggregate", return_value=0)
    def test_reaggregate(self, mock_re: MagicMock, _log: MagicMock) -> None:
        main(["--reaggregate", "2026-03-01"])
        mock_re.assert_called_once_with("2026-03-01", None)

    @patch("ec_index.cli.runner.run_health_check", new_callable=AsyncMock)
    def test_health(self, mock_health: AsyncMock, _log: MagicMock) -> None:
        mock_health.return_value = 1
        self.assertEqual(main(["--health"]), 1)
        mock_health.assert_awaited_once()

    def test_no_flag_prints_help(self, _log: MagicMock) -> None:
        with patch("sys.stdout"):
            self.assertEqual(main([]), 2)

    def test_flags_are_exclusive(self, _log: MagicMock) -> None:
        with patch("sys.stderr"), self.assertRaises(SystemExit):
            main(["--all", "--export"])


class TestRunner(unittest.TestCase):
    """Runner commands with the pipeline mocked out."""

    def test_resolve_all(self) -> None:
        self.assertEqual(
            set(runner.resolve_benchmarks(None)),
            {"ECI-SMP-300", "ECI-SUP-VIT", "ECI-SNK-MEN"},
        )

    def test_resolve_subset_strips_spaces(self) -> None:
        self.assertEqual(
            runner.resolve_benchmarks(" ECI-SMP-300 , ECI-SNK-MEN"),
            ["ECI-SMP-300", "ECI-SNK-MEN"],
        )

    @patch.object(runner, "_err")
    def test_resolve_unknown_exits(self, _err: MagicMock) -> None:
        with self.assertRaises(SystemExit) as ctx:
            runner.resolve_benchmarks("ECI-NOPE")
        self.assertEqual(ctx.exception.code, 1)

    @patch.object(runner, "print_summary")
    @patch.object(runner, "_err")
    @patch.object(runner, "Pipeline")
    def test_run_collection_exit_codes(
        self, mock_pipeline: MagicMock, _err: MagicMock, _print: MagicMock,
    ) -> None:
        instance = mock_pipeline.return_value
        instance.run_all = AsyncMock(return_value=_summary())
        self.assertEqual(runner.run_collection("ECI-SMP-300"), 0)
        instance.close.assert_called_once()

        instance.run_all = AsyncMock(return_value=_summary("ECI-SMP-300: boom"))
        self.assertEqual(runner.run_collection("ECI-SMP-300"), 1)

    @patch.object(runner, "_err")
    @patch.object(runner, "Pipeline")
    def test_run_export_nothing_exported(
        self, mock_pipeline: MagicMock, _err: MagicMock,
    ) -> None:
        mock_pipeline.return_value.export_all.return_value = {
            "ECI-SMP-300": None,
        }
        self.assertEqual(runner.run_export("ECI-SMP-300"), 1)

    @patch.object(runner, "_err")
    def test_reaggregate_bad_date(self, _err: MagicMock) -> None:
        self.assertEqual(runner.run_reaggregate("01.03.2026", None), 2)

    @patch.object(runner, "Console")
    def test_list_benchmarks(self, mock_console: MagicMock) -> None:
        self.assertEqual(runner.list_benchmarks(), 0)
        mock_console.return_value.print.assert_called_once()


if __name__ == "__main__":
    unittest.main()
