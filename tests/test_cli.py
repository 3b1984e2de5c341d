"""Tests for the ritz CLI."""

import asyncio

import pytest
from typer.testing import CliRunner

from ritz import __version__
from ritz.cli import app
from ritz.config import config
from ritz.models import PipelineRunState, PipelineStage, ProjectMeta, Shot, ShotState
from ritz.storage import LocalAssetStore, ProjectKeys

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "storage_backend", "local")
    monkeypatch.setattr(config, "workspace", tmp_path)
    monkeypatch.setattr(config, "key_prefix", "ritz")
    return LocalAssetStore(tmp_path)


def _seed(store, project_id="p1"):
    keys = ProjectKeys(project_id, "ritz")
    state = PipelineRunState(
        project_id=project_id,
        stage=PipelineStage.MONTAGE,
        progress=85,
        shots=[
            Shot(index=0, name="harbor", video_url="file:///v0.mp4", state=ShotState.ANIMATE_READY),
            Shot(index=1, name="fog", failed=True, fail_error="gemini: no image returned",
                 state=ShotState.FAILED),
        ],
    )
    meta = ProjectMeta(id=project_id, theme="harbor at dawn")

    async def write():
        await store.put_json(keys.state(), state.to_document())
        await store.put_json(keys.project(), meta.to_document())

    asyncio.run(write())


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"ritz version {__version__}" in result.output


def test_status(workspace):
    _seed(workspace)
    result = runner.invoke(app, ["status", "p1"])

    assert result.exit_code == 0
    assert "Stage: montage (85%)" in result.output
    assert "Shots (1/2 complete)" in result.output
    assert "gemini: no image returned" in result.output


def test_status_unknown_project(workspace):
    result = runner.invoke(app, ["status", "nope"])

    assert result.exit_code == 1
    assert "No project found" in result.output


def test_projects(workspace):
    _seed(workspace, "p1")
    _seed(workspace, "p2")
    result = runner.invoke(app, ["projects"])

    assert result.exit_code == 0
    assert "Projects (2)" in result.output
    assert "p1: harbor at dawn [created, montage 85%]" in result.output


def test_projects_empty(workspace):
    result = runner.invoke(app, ["projects"])

    assert result.exit_code == 0
    assert "No projects yet" in result.output


def test_delete(workspace):
    _seed(workspace)
    result = runner.invoke(app, ["delete", "p1", "--yes"])

    assert result.exit_code == 0
    assert "Deleted p1 (2 assets)" in result.output
    assert runner.invoke(app, ["status", "p1"]).exit_code == 1


def test_create_requires_credentials(workspace, monkeypatch):
    monkeypatch.setattr(config, "anthropic_api_key", "")
    result = runner.invoke(app, ["create", "harbor at dawn"])

    assert result.exit_code == 1
    assert "ANTHROPIC_API_KEY not set" in result.output


def test_create_missing_reference(workspace):
    result = runner.invoke(app, ["create", "harbor at dawn", "--ref", "missing.png"])

    assert result.exit_code == 1
    assert "Reference image not found" in result.output


def test_assemble_reports_short_clip(workspace, monkeypatch):
    from ritz.editor import MediaProber

    _seed(workspace)
    asyncio.run(workspace.put(ProjectKeys("p1", "ritz").video(0), b"clip", "video/mp4"))

    async def short_clip(self, path):
        return 0.5

    monkeypatch.setattr(MediaProber, "video_duration", short_clip)
    result = runner.invoke(app, ["assemble", "p1"])

    assert result.exit_code == 1
    assert "❌ Montage failed" in result.output
    assert "crossfade" in result.output
    assert "Retry with: ritz assemble p1" in result.output
    assert not isinstance(result.exception, ValueError)


def test_retry_shot_reports_failure(workspace, monkeypatch):
    import ritz.cli as cli

    _seed(workspace)

    class Orchestrator:
        def abort(self):
            pass

        async def retry_shot(self, project_id, index):
            document = await workspace.get_json(ProjectKeys(project_id, "ritz").state())
            state = PipelineRunState.from_document(document)
            state.shot(index).failed = True
            state.shot(index).fail_error = "primary: animation failed: render failed"
            return state

    class Pipeline:
        orchestrator = Orchestrator()

    monkeypatch.setattr(cli, "_pipeline", lambda: Pipeline())
    result = runner.invoke(app, ["retry-shot", "p1", "0"])

    assert result.exit_code == 1
    assert "❌ Shot 0 failed: primary: animation failed: render failed" in result.output
    assert "complete" not in result.output
