from __future__ import annotations

import tempfile
import threading
import time
import unittest
from pathlib import Path

from terragrunt_runner.engine import AUTOMATION_ENV, FolderExecutionEngine, build_run_all_args
from terragrunt_runner.outputs import write_action_outputs
from terragrunt_runner.report import ReportAssembler
from terragrunt_runner.runtime_config import ExecutionConfig
from terragrunt_runner.types import ProcessOutput
from terragrunt_runner.utils import relative_to_run_root


class _FakeRunner:
    def __init__(self, outputs: dict[str, ProcessOutput], delay: float = 0.0):
        self.outputs = outputs
        self.delay = delay
        self.calls: list[tuple[list[str], Path, dict[str, str]]] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def __call__(self, argv: list[str], cwd: Path, env: dict[str, str]) -> ProcessOutput:
        with self._lock:
            self.calls.append((argv, cwd, env))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            return self.outputs.get(cwd.name, ProcessOutput(exit_code=0, stdout="No changes.", stderr=""))
        finally:
            with self._lock:
                self.active -= 1


class _RaisingRunner:
    def __call__(self, argv: list[str], cwd: Path, env: dict[str, str]) -> ProcessOutput:
        raise FileNotFoundError(argv[0])


class PerFolderExecutionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        for name in ("a", "b", "c", "d"):
            (self.root / name).mkdir()
        self.console: list[str] = []

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _engine(self, config: ExecutionConfig, runner) -> FolderExecutionEngine:
        return FolderExecutionEngine(config, repo_root=self.root, runner=runner, console=self.console.append, env={})

    def test_sequential_success_and_failure(self) -> None:
        runner = _FakeRunner(
            {
                "a": ProcessOutput(exit_code=0, stdout="Plan: 1 to add, 0 to change, 0 to destroy.\n", stderr=""),
                "b": ProcessOutput(exit_code=1, stdout="", stderr="Error: bad config\n"),
            }
        )
        config = ExecutionConfig.create(command="plan", folders=["a", "b"], parallel=False, extra_args="")
        results = self._engine(config, runner).execute()

        self.assertEqual([r.folder for r in results], ["a", "b"])
        a, b = results
        self.assertTrue(a.success)
        self.assertEqual(a.resource_changes.to_add, 1)
        self.assertFalse(b.success)
        self.assertIn("Error: bad config", b.error)
        self.assertFalse(all(r.success for r in results))

    def test_paths_are_anchored_at_repo_root_with_automation_env(self) -> None:
        runner = _FakeRunner({})
        config = ExecutionConfig.create(command="plan -lock=false", folders=["a"], parallel=False, extra_args="--non-interactive")
        self._engine(config, runner).execute()

        argv, cwd, env = runner.calls[0]
        self.assertEqual(argv, ["terragrunt", "plan", "-lock=false", "--non-interactive"])
        self.assertEqual(cwd, self.root / "a")
        for key, value in AUTOMATION_ENV.items():
            self.assertEqual(env[key], value)

    def test_parallel_respects_semaphore_width(self) -> None:
        runner = _FakeRunner({}, delay=0.2)
        config = ExecutionConfig.create(command="plan", folders=["a", "b", "c", "d"], parallel=True, max_parallel=2)
        results = self._engine(config, runner).execute()

        self.assertEqual({r.folder for r in results}, {"a", "b", "c", "d"})
        self.assertEqual(runner.max_active, 2)

    def test_parallel_width_is_not_capped_by_default_thread_pool(self) -> None:
        folders = [f"unit{i}" for i in range(10)]
        for name in folders:
            (self.root / name).mkdir()
        runner = _FakeRunner({}, delay=0.3)
        config = ExecutionConfig.create(command="plan", folders=folders, parallel=True, max_parallel=10)
        results = self._engine(config, runner).execute()

        self.assertEqual(len(results), 10)
        self.assertEqual(runner.max_active, 10)

    def test_zero_width_means_all_folders_at_once(self) -> None:
        config = ExecutionConfig.create(command="plan", folders=["a", "b", "c"], max_parallel=0)
        self.assertEqual(config.parallel_width, 3)

    def test_forbidden_args_fail_every_folder_without_running(self) -> None:
        runner = _FakeRunner({})
        config = ExecutionConfig.create(command="plan", folders=["a", "b"], extra_args="--x;rm", parallel=False)
        results = self._engine(config, runner).execute()

        self.assertEqual(runner.calls, [])
        self.assertTrue(all(not r.success for r in results))
        self.assertIn("forbidden pattern", results[0].error)

    def test_missing_folder_does_not_stop_siblings(self) -> None:
        runner = _FakeRunner({})
        config = ExecutionConfig.create(command="plan", folders=["missing", "a"], parallel=True, max_parallel=2)
        results = {r.folder: r for r in self._engine(config, runner).execute()}

        self.assertFalse(results["missing"].success)
        self.assertIn("does not exist", results["missing"].error)
        self.assertTrue(results["a"].success)

    def test_missing_binary_is_a_failed_result(self) -> None:
        config = ExecutionConfig.create(command="plan", folders=["a"], parallel=False)
        results = self._engine(config, _RaisingRunner()).execute()
        self.assertFalse(results[0].success)
        self.assertIn("Executable not found", results[0].error)

    def test_console_gets_raw_colored_output_and_result_is_clean(self) -> None:
        colored = "\x1b[1mTerraform will perform the following actions:\x1b[0m\n\x1b[1mPlan:\x1b[0m 1 to add, 0 to change, 0 to destroy.\n"
        runner = _FakeRunner({"a": ProcessOutput(exit_code=0, stdout=colored, stderr="")})
        config = ExecutionConfig.create(command="plan", folders=["a"], parallel=False)
        results = self._engine(config, runner).execute()

        self.assertTrue(any("\x1b[1mTerraform" in line for line in self.console))
        self.assertIn("::group::Terragrunt in a", self.console)
        self.assertNotIn("\x1b", results[0].output)

    def test_stdout_is_concatenated_before_stderr(self) -> None:
        runner = _FakeRunner({"a": ProcessOutput(exit_code=0, stdout="out\n", stderr="err\n")})
        config = ExecutionConfig.create(command="plan", folders=["a"], parallel=False)
        results = self._engine(config, runner).execute()
        self.assertEqual(results[0].raw_output, "out\nerr\n")


class RunAllArgsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.root = Path("/repo")

    def test_relative_to_run_root_translation(self) -> None:
        cases = [
            ("live/accounts/account1/baseline", "live/accounts", "account1/baseline"),
            ("live/a", "live", "a"),
            ("live", "live", "."),
            ("other/x", "live", "../other/x"),
        ]
        for folder, run_root, expected in cases:
            with self.subTest(folder=folder, run_root=run_root):
                self.assertEqual(relative_to_run_root(folder, repo_root=self.root, run_root=run_root), expected)

    def test_run_all_layout_without_separator(self) -> None:
        config = ExecutionConfig.create(command="run --all plan", folders=["live/a", "live/b"], max_parallel=3, run_all_root="live")
        argv = build_run_all_args(config, repo_root=self.root, extra_args=["--non-interactive"])
        self.assertEqual(
            argv,
            [
                "run", "--all",
                "--parallelism", "3",
                "--queue-include-dir", "a",
                "--queue-include-dir", "b",
                "--queue-include-external",
                "--non-interactive",
                "plan",
            ],
        )

    def test_legacy_run_all_and_separator(self) -> None:
        config = ExecutionConfig.create(command="run-all plan -- -lock=false", folders=["live/a"], max_parallel=0, run_all_root="live")
        argv = build_run_all_args(config, repo_root=self.root, extra_args=[])
        self.assertEqual(
            argv,
            ["run", "--all", "plan", "--queue-include-dir", "a", "--queue-include-external", "--", "-lock=false"],
        )


class RunAllExecutionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "live").mkdir()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, stdout: str, exit_code: int = 0):
        runner = _FakeRunner({"live": ProcessOutput(exit_code=exit_code, stdout=stdout, stderr="")})
        config = ExecutionConfig.create(command="run --all plan", folders=["live/a", "live/b"], run_all_root="live")
        engine = FolderExecutionEngine(config, repo_root=self.root, runner=runner, console=lambda _line: None, env={})
        return runner, engine.execute()

    def test_demultiplexed_rows_and_whole_run_row(self) -> None:
        transcript = "\n".join(
            [
                "[a] Terraform will perform the following actions:",
                "[a] Plan: 1 to add, 0 to change, 0 to destroy.",
                "[b] Terraform will perform the following actions:",
                "[b] Plan: 0 to add, 2 to change, 0 to destroy.",
                "❯❯ Run Summary  2 units  3s",
                "   Succeeded    2",
            ]
        )
        runner, results = self._run(transcript)

        self.assertEqual(len(runner.calls), 1)
        self.assertEqual(runner.calls[0][1], self.root / "live")
        whole, *modules = results
        self.assertEqual(whole.folder, "live")
        self.assertEqual((whole.resource_changes.to_add, whole.resource_changes.to_change), (1, 2))
        by_folder = {r.folder: r for r in modules}
        self.assertEqual(set(by_folder), {"live/a", "live/b"})
        self.assertEqual(by_folder["live/a"].resource_changes.to_add, 1)
        self.assertIn("Run Summary", modules[-1].output)

    def test_module_with_error_fails_alone(self) -> None:
        transcript = "[a] Error: bad config\n[b] Plan: 1 to add, 0 to change, 0 to destroy."
        _, results = self._run(transcript)
        by_folder = {r.folder: r for r in results[1:]}
        self.assertFalse(by_folder["live/a"].success)
        self.assertTrue(by_folder["live/b"].success)

    def test_unsplittable_output_falls_back_per_folder(self) -> None:
        _, results = self._run("Plan: 2 to add, 0 to change, 0 to destroy.", exit_code=1)
        whole, *rows = results
        self.assertFalse(whole.success)
        self.assertEqual([r.folder for r in rows], ["live/a", "live/b"])
        for row in rows:
            self.assertEqual(row.resource_changes.to_add, 2)
            self.assertFalse(row.success)

    def test_unsplittable_output_counts_aggregate_once(self) -> None:
        runner = _FakeRunner({"live": ProcessOutput(exit_code=0, stdout="Plan: 2 to add, 0 to change, 0 to destroy.", stderr="")})
        config = ExecutionConfig.create(command="run --all plan", folders=["live/a", "live/b", "live/c"], run_all_root="live")
        results = FolderExecutionEngine(config, repo_root=self.root, runner=runner, console=lambda _line: None, env={}).execute()

        whole, *rows = results
        self.assertEqual(len(rows), 3)
        self.assertEqual(len({id(row.resource_changes) for row in [whole, *rows]}), 4)

        totals = ReportAssembler(config).compute_totals(results)
        self.assertEqual(totals.changes.to_add, 2)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "github_output"
            write_action_outputs(path, totals)
            lines = path.read_text(encoding="utf-8").splitlines()
        self.assertIn("total-resources-to-add=2", lines)

    def test_failed_module_is_not_a_no_change_run(self) -> None:
        _, results = self._run("[a] Error: bad config\n[b] No changes. Your infrastructure matches the configuration.")
        whole = results[0]
        self.assertFalse(whole.resource_changes.no_changes)


if __name__ == "__main__":
    unittest.main()
