from __future__ import annotations

from pathlib import Path
import subprocess
import sys
import tempfile
import unittest
from unittest.mock import patch

from smaug.command_runner import (
    CommandLaunchError,
    CommandTimeoutError,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)


class SubprocessCommandRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.cwd = Path(self.temp_dir.name)
        self.runner = SubprocessCommandRunner()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_runs_in_working_directory_with_arguments(self) -> None:
        script = "import pathlib, sys; pathlib.Path('out.txt').write_text(' '.join(sys.argv[1:]))"

        result = self.runner.run([sys.executable, "-c", script, "Asteroids", "--flag"], cwd=self.cwd, quiet=True)

        self.assertTrue(result.succeeded)
        self.assertEqual((self.cwd / "out.txt").read_text(), "Asteroids --flag")

    def test_non_zero_exit_is_reported_not_raised(self) -> None:
        result = self.runner.run([sys.executable, "-c", "raise SystemExit(3)"], cwd=self.cwd, quiet=True)

        self.assertFalse(result.succeeded)
        self.assertEqual(result.returncode, 3)

    def test_quiet_discards_stdout(self) -> None:
        with patch("smaug.command_runner.subprocess.run") as run:
            run.return_value = subprocess.CompletedProcess(args=["tool"], returncode=0)
            self.runner.run(["tool"], quiet=True)
            self.assertIs(run.call_args.kwargs["stdout"], subprocess.DEVNULL)

            self.runner.run(["tool"])
            self.assertIsNone(run.call_args.kwargs["stdout"])

    def test_missing_executable_raises_launch_error(self) -> None:
        with self.assertRaises(CommandLaunchError) as ctx:
            self.runner.run([str(self.cwd / "dragonruby-publish"), "game"], cwd=self.cwd)
        self.assertIsInstance(ctx.exception.reason, FileNotFoundError)

    def test_timeout_raises_timeout_error(self) -> None:
        with self.assertRaises(CommandTimeoutError) as ctx:
            self.runner.run([sys.executable, "-c", "import time; time.sleep(30)"], quiet=True, timeout=0.5)
        self.assertEqual(ctx.exception.timeout, 0.5)


class RecordingCommandRunnerTests(unittest.TestCase):
    def test_records_and_formats_commands(self) -> None:
        runner = RecordingCommandRunner()

        result = runner.run(["/opt/dr/dragonruby-publish", "my game"], cwd=Path("/opt/dr"), note="Publish project")

        self.assertTrue(result.succeeded)
        self.assertEqual(
            list(runner.iter_formatted()),
            ["[dry-run] Publish project (cwd=/opt/dr) /opt/dr/dragonruby-publish 'my game'"],
        )

    def test_configured_return_code(self) -> None:
        runner = RecordingCommandRunner(returncode=1)

        result = runner.run(["tool"], quiet=True)

        self.assertFalse(result.succeeded)
        self.assertEqual(result.returncode, 1)
        self.assertTrue(runner.commands[0].quiet)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
