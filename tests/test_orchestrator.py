"""End-to-end tests for PipelineOrchestrator with a scripted command runner."""
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from deployer.models import AuthStatus, FolderState, StageName, StageStatus
from deployer.orchestrator import PipelineError, PipelineOrchestrator
from deployer.services.relocation import RelocationResult
from deployer.utils.naming import with_random_suffix

from conftest import FakeRunner, flags, read_record, write_record


def make_orchestrator(root, runner, config, **kwargs):
    kwargs.setdefault("rng", random.Random(0))
    return PipelineOrchestrator(root, config, runner=runner, **kwargs)


@pytest.fixture
def root(tmp_path):
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture
def app(root):
    folder = root / "My Cool App"
    folder.mkdir()
    (folder / "index.html").write_text("<h1>My Cool App</h1>")
    return folder


class TestScan:
    def test_excludes_done_dir_hidden_and_files(self, root, runner, config):
        for name in ("b-site", "a-site", "upload done", ".cache", "node_modules"):
            (root / name).mkdir()
        (root / "notes.txt").write_text("x")

        folders = make_orchestrator(root, runner, config).scan()

        assert [f.name for f in folders] == ["a-site", "b-site"]


class TestRun:
    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path, runner, config):
        with pytest.raises(PipelineError):
            await make_orchestrator(tmp_path / "missing", runner, config).run()

    @pytest.mark.asyncio
    async def test_empty_root_creates_done_dir(self, root, runner, config):
        result = await make_orchestrator(root, runner, config).run()

        assert result.total == 0
        assert result.all_success
        assert (root / "upload done").is_dir()
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_partial_failure_then_resume(self, root, app, config):
        runner = FakeRunner().on("vercel", "--prod", returncode=1, stderr="Error: build failed")
        orchestrator = make_orchestrator(root, runner, config)
        snapshots = []

        def snapshot(unit, result):
            if result.status == StageStatus.SUCCESS:
                snapshots.append(flags(read_record(unit.path)))

        orchestrator.on_stage_complete(snapshot)

        first = await orchestrator.run()

        report = first.reports[0]
        assert report.identity == "my-cool-app"
        assert report.state == FolderState.PARTIALLY_DONE
        assert report.failed_stages == [StageName.VERCEL]
        assert snapshots == [(True, False, False), (True, False, True)]
        assert app.is_dir()
        assert read_record(app)["repoName"] == "my-cool-app"
        assert (app / ".gitignore").exists()
        assert not first.all_success

        # Second run: only the Vercel stage has work left
        rerun = FakeRunner()
        second = await make_orchestrator(root, rerun, config).run()

        assert {argv[0] for argv, _ in rerun.calls} == {"vercel"}
        assert rerun.commands("vercel", "--prod") == [("vercel", "--prod", "--yes")]
        assert second.reports[0].state == FolderState.RELOCATED
        assert second.all_success
        moved = root / "upload done" / "My Cool App"
        assert not app.exists()
        assert flags(read_record(moved)) == (True, True, True)
        assert (moved / "index.html").exists()

    @pytest.mark.asyncio
    async def test_completed_folder_is_only_relocated(self, root, app, runner, config):
        write_record(app, repo_name="my-cool-app", github=True, vercel=True, netlify=True)

        result = await make_orchestrator(root, runner, config).run()

        assert runner.calls == []
        assert result.reports[0].state == FolderState.RELOCATED
        assert result.reports[0].destination == root / "upload done" / "My Cool App"
        assert [r.status for r in result.reports[0].results] == [StageStatus.SKIPPED] * 3

    @pytest.mark.asyncio
    async def test_existing_destination_gets_new_name(self, root, app, runner, config):
        write_record(app, repo_name="my-cool-app", github=True, vercel=True, netlify=True)
        taken = root / "upload done" / "My Cool App"
        taken.mkdir(parents=True)
        (taken / "keep.txt").write_text("older copy")

        result = await make_orchestrator(root, runner, config).run()

        destination = result.reports[0].destination
        assert destination != taken
        assert destination.name.startswith("My Cool App_")
        assert (taken / "keep.txt").read_text() == "older copy"
        assert not app.exists()

    @pytest.mark.asyncio
    async def test_name_collision_renames_before_freeze(self, root, app, runner, config):
        runner.on(
            "gh", "repo", "create", "my-cool-app",
            returncode=1, stderr="GraphQL: Name already exists on this account",
        )

        result = await make_orchestrator(root, runner, config, rng=random.Random(11)).run()

        expected = with_random_suffix("my-cool-app", config.name_suffix_max, random.Random(11))
        report = result.reports[0]
        assert report.identity == expected
        assert report.state == FolderState.RELOCATED
        record = read_record(report.destination)
        assert record["repoName"] == expected

    @pytest.mark.asyncio
    async def test_rejected_name_not_reused_next_run(self, root, app, config):
        runner = FakeRunner()
        runner.on("gh", "repo", "create", "my-cool-app", returncode=1, stderr="GraphQL: Name already exists")
        runner.on("gh", "repo", "create", returncode=1, stderr="HTTP 502: Bad Gateway")

        first = await make_orchestrator(root, runner, config).run()

        assert first.reports[0].state == FolderState.PARTIALLY_DONE
        assert read_record(app)["repoName"] == "my-cool-app"

        rerun = FakeRunner()
        await make_orchestrator(root, rerun, config).run()

        assert [argv[3] for argv in rerun.commands("gh", "repo", "create")] == ["my-cool-app"]

    @pytest.mark.asyncio
    async def test_errored_folder_does_not_stop_batch(self, root, runner, config):
        broken = root / "a-broken"
        broken.mkdir()
        # Sidecar path taken by a directory: progress cannot be saved
        (broken / config.status_file).mkdir()
        healthy = root / "b-healthy"
        healthy.mkdir()

        result = await make_orchestrator(root, runner, config).run()

        states = {r.folder_name: r.state for r in result.reports}
        assert states == {"a-broken": FolderState.ERRORED_RETAINED, "b-healthy": FolderState.RELOCATED}
        assert broken.is_dir()
        assert result.errored == 1
        assert result.relocated == 1
        assert "IsADirectoryError" in result.reports[0].error or "PermissionError" in result.reports[0].error

    @pytest.mark.asyncio
    async def test_locked_folder_stays_complete(self, root, app, runner, config):
        write_record(app, repo_name="my-cool-app", github=True, vercel=True, netlify=True)
        guard = MagicMock()
        guard.relocate = AsyncMock(
            return_value=RelocationResult(False, app, root / "upload done" / app.name, 10, "busy")
        )

        result = await make_orchestrator(root, runner, config, guard=guard).run()

        report = result.reports[0]
        assert report.state == FolderState.COMPLETE
        assert report.error == "busy"
        assert app.is_dir()
        assert not result.all_success

    @pytest.mark.asyncio
    async def test_existing_ignore_file_untouched(self, root, app, runner, config):
        (app / ".gitignore").write_text("custom\n")

        await make_orchestrator(root, runner, config).run()

        moved = root / "upload done" / "My Cool App"
        assert (moved / ".gitignore").read_text() == "custom\n"

    @pytest.mark.asyncio
    async def test_events(self, root, app, runner, config):
        orchestrator = make_orchestrator(root, runner, config)
        seen = []
        orchestrator.on_batch_start(lambda total: seen.append(("batch_start", total)))
        orchestrator.on_folder_start(lambda unit, i, n: seen.append(("folder_start", unit.name, i, n)))
        orchestrator.on_folder_finish(lambda report: seen.append(("folder_finish", report.state)))
        orchestrator.on_batch_finish(lambda batch: seen.append(("batch_finish", batch.total)))

        await orchestrator.run()

        assert seen == [
            ("batch_start", 1),
            ("folder_start", "My Cool App", 0, 1),
            ("folder_finish", FolderState.RELOCATED),
            ("batch_finish", 1),
        ]

    @pytest.mark.asyncio
    async def test_commands_run_inside_each_folder(self, root, runner, config):
        for name in ("one", "two"):
            (root / name).mkdir()

        await make_orchestrator(root, runner, config).run()

        cwds = {cwd.name for _, cwd in runner.calls}
        assert cwds == {"one", "two"}


class TestRepair:
    @pytest.mark.asyncio
    async def test_requires_done_dir(self, root, runner, config):
        with pytest.raises(PipelineError):
            await make_orchestrator(root, runner, config).repair()

    @pytest.mark.asyncio
    async def test_runs_only_pending_host_stages(self, root, runner, config):
        done = root / "upload done"
        folder = done / "shop"
        write_record(folder, repo_name="shop", github=True, vercel=True, netlify=False)

        result = await make_orchestrator(root, runner, config).repair()

        assert runner.commands("gh") == []
        assert runner.commands("vercel") == []
        assert runner.commands("netlify", "deploy") == [("netlify", "deploy", "--prod", "--dir=.")]
        assert flags(read_record(folder)) == (True, True, True)
        assert folder.is_dir()
        assert result.reports[0].state == FolderState.COMPLETE


    @pytest.mark.asyncio
    async def test_folder_without_sidecar_keeps_github_done(self, root, runner, config):
        folder = root / "upload done" / "Old Site"
        folder.mkdir(parents=True)

        result = await make_orchestrator(root, runner, config).repair()

        data = read_record(folder)
        assert data["repoName"] == "old-site"
        assert flags(data) == (True, True, True)
        assert runner.commands("gh") == []
        assert result.reports[0].state == FolderState.COMPLETE


class TestCheckAuth:
    @pytest.mark.asyncio
    async def test_reports_each_provider(self, root, runner, config):
        runner.on("vercel", "whoami", returncode=1)

        statuses = await make_orchestrator(root, runner, config).check_auth()

        assert set(statuses) == {"github", "vercel", "netlify"}
        assert statuses["github"].ok
        assert statuses["vercel"].ok is False

    @pytest.mark.asyncio
    async def test_provider_exception_not_fatal(self, root, runner, config):
        github = MagicMock()
        github.check_auth = AsyncMock(side_effect=OSError("gh crashed"))

        statuses = await make_orchestrator(root, runner, config, github=github).check_auth()

        assert statuses["github"] == AuthStatus("github", False, "gh crashed")
