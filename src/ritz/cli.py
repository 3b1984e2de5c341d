"""CLI entry point for the ritz content pipeline."""

import asyncio
import contextlib
import logging
import mimetypes
import signal
import typer
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import config
from .errors import PipelineCancelled, RitzError
from .models import AspectFormat, PipelineRunState, ShotState, Storyboard
from .storage import create_store

app = typer.Typer(
    name="ritz",
    help="AI cinematic video pipeline: storyboard, shots, music and montage",
    no_args_is_help=True
)

STATE_ICONS = {
    ShotState.ANIMATE_READY: "✅",
    ShotState.FAILED: "❌",
    ShotState.PENDING: "⏳",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    # Request logs from the HTTP stack drown out pipeline progress
    logging.getLogger("httpx").setLevel(logging.WARNING)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"ritz version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """Ritz - Turn a theme into a finished cinematic video."""
    pass


def _store():
    try:
        return create_store()
    except ValueError as e:
        typer.echo(f"❌ Storage configuration error: {e}")
        raise typer.Exit(1)


def _pipeline():
    from .pipeline.providers import create_pipeline

    try:
        return create_pipeline(_store())
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)


def _run(orchestrator, coro):
    """Run a pipeline coroutine; Ctrl-C stops it at the next checkpoint."""

    async def runner():
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGINT, orchestrator.abort)
        return await coro

    try:
        return asyncio.run(runner())
    except PipelineCancelled:
        typer.echo("⏹️  Run stopped. Continue it with 'ritz resume'.")
        raise typer.Exit(130)
    except RitzError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)


def _load_references(paths: List[Path]):
    from .services import ReferenceImage

    references = []
    for path in paths:
        if not path.is_file():
            typer.echo(f"❌ Reference image not found: {path}")
            raise typer.Exit(1)
        mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
        references.append(ReferenceImage(data=path.read_bytes(), mime_type=mime_type))
    return references


def _print_state(state: PipelineRunState) -> None:
    typer.echo(f"   Stage: {state.stage.value} ({state.progress}%)")
    typer.echo(f"   Format: {state.format.value}")
    if state.error:
        typer.echo(f"   Error: {state.error}")

    if state.shots:
        typer.echo(f"\n🎞️  Shots ({len(state.complete_shots())}/{len(state.shots)} complete):")
    for shot in state.shots:
        icon = STATE_ICONS.get(shot.state, "🔄")
        typer.echo(f"   {icon} [{shot.index}] {shot.name}: {shot.state.value}")
        if shot.fail_error:
            typer.echo(f"      → {shot.fail_error}")
        if shot.animate_provider:
            typer.echo(f"      → animated by {shot.animate_provider}")

    if state.music_url:
        typer.echo(f"\n🎵 Music: {state.music_url}")


def _print_storyboard(storyboard: Storyboard) -> None:
    typer.echo(f"\n📋 Storyboard ({len(storyboard.shots)} shots):")
    for shot in storyboard.shots:
        prompt_preview = shot.image_prompt[:70] + "..." if len(shot.image_prompt) > 70 else shot.image_prompt
        typer.echo(f"   • [{shot.index}] {shot.name}")
        typer.echo(f"     {prompt_preview}")
    if storyboard.music_style:
        typer.echo(f"\n🎵 Music style: {storyboard.music_style}")


@app.command()
def create(
    theme: str = typer.Argument(
        ...,
        help="Theme or concept for the video"
    ),
    ref: List[Path] = typer.Option(
        [],
        "--ref",
        "-r",
        help="Reference image (repeatable)"
    ),
    video_description: Optional[str] = typer.Option(
        None,
        "--video-description",
        "-d",
        help="Description of a reference video whose style to replicate"
    ),
    aspect: AspectFormat = typer.Option(
        AspectFormat.TALL,
        "--format",
        "-f",
        help="Target aspect ratio"
    ),
    shots: Optional[int] = typer.Option(
        None,
        "--shots",
        "-n",
        help="Number of shots (default from config)",
        min=1,
        max=20
    ),
    output: Path = typer.Option(
        Path("storyboard.yaml"),
        "--output",
        "-o",
        help="Where to write the storyboard for review"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Create a project and generate its storyboard for review."""
    setup_logging(verbose)
    typer.echo(f"🎬 Creating project: {theme}")
    typer.echo(f"   Format: {aspect.value}")

    references = _load_references(ref)
    if references:
        typer.echo(f"   Reference images: {len(references)}")

    pipeline = _pipeline()
    orchestrator = pipeline.orchestrator

    async def flow():
        state = await orchestrator.create_project(
            theme,
            reference_images=references,
            aspect=aspect,
            num_shots=shots,
            video_description=video_description,
        )
        return state, await orchestrator.load_storyboard(state.project_id)

    state, storyboard = _run(orchestrator, flow())
    _print_storyboard(storyboard)

    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        storyboard.to_yaml(output)
    except OSError as e:
        typer.echo(f"❌ Error saving storyboard: {e}")
        raise typer.Exit(1)

    typer.echo(f"\n✅ Project {state.project_id} awaiting review")
    typer.echo(f"   Storyboard saved: {output}")
    typer.echo(f"\nEdit it if you like, then run:")
    typer.echo(f"   ritz confirm {state.project_id} --storyboard {output}")


@app.command()
def confirm(
    project_id: str = typer.Argument(..., help="Project awaiting review"),
    storyboard_file: Optional[Path] = typer.Option(
        None,
        "--storyboard",
        "-s",
        help="Edited storyboard YAML (defaults to the stored storyboard)",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Confirm the storyboard, generate every shot and assemble the video."""
    setup_logging(verbose)

    storyboard = None
    if storyboard_file:
        try:
            storyboard = Storyboard.from_yaml(storyboard_file)
        except Exception as e:
            typer.echo(f"❌ Error loading storyboard: {e}")
            raise typer.Exit(1)
        typer.echo(f"📝 Using edited storyboard: {storyboard_file} ({len(storyboard.shots)} shots)")

    pipeline = _pipeline()
    typer.echo(f"⏳ Generating shots for {project_id}...")
    state = _run(pipeline.orchestrator, pipeline.orchestrator.confirm(project_id, storyboard))
    _print_state(state)
    _assemble(project_id)


@app.command()
def resume(
    project_id: str = typer.Argument(..., help="Project to continue"),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Continue an interrupted run with only its unfinished shots."""
    from .models import PipelineStage

    setup_logging(verbose)
    pipeline = _pipeline()
    typer.echo(f"⏯️  Resuming {project_id}...")
    state = _run(pipeline.orchestrator, pipeline.orchestrator.resume(project_id))
    _print_state(state)

    if state.stage is PipelineStage.STORYBOARD_REVIEW:
        typer.echo(f"\nStoryboard still awaiting review: ritz confirm {project_id}")
        return
    if state.stage is PipelineStage.MONTAGE:
        _assemble(project_id)


@app.command("retry-shot")
def retry_shot(
    project_id: str = typer.Argument(..., help="Project owning the shot"),
    index: int = typer.Argument(..., help="Shot index", min=0),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Re-run one shot from image generation."""
    setup_logging(verbose)
    pipeline = _pipeline()
    typer.echo(f"🔁 Retrying shot {index} of {project_id}...")
    state = _run(pipeline.orchestrator, pipeline.orchestrator.retry_shot(project_id, index))

    shot = state.shot(index)
    if shot.failed or not shot.is_complete:
        typer.echo(f"❌ Shot {index} failed: {shot.fail_error or shot.state.value}")
        raise typer.Exit(1)

    typer.echo(f"✅ Shot {index} complete: {shot.video_url}")
    typer.echo(f"   Re-assemble with: ritz assemble {project_id}")


def _assemble(project_id: str) -> None:
    from .editor import MontageAssembler

    assembler = MontageAssembler(_store())
    typer.echo(f"\n📼 Assembling montage for {project_id}...")
    try:
        result = asyncio.run(assembler.assemble(project_id))
    except RitzError as e:
        typer.echo(f"❌ Montage failed: {e}")
        typer.echo(f"   Shot outputs are kept. Retry with: ritz assemble {project_id}")
        raise typer.Exit(1)

    typer.echo(f"✅ Video assembled: {result.url}")
    typer.echo(f"   Duration: {result.duration:.1f}s")
    typer.echo(f"   Clips: {result.clips}")
    typer.echo(f"   Resolution: {'x'.join(str(v) for v in result.format.resolution)}")
    if not result.has_audio:
        typer.echo("   ⚠️  No music track, the video is silent")


@app.command()
def assemble(
    project_id: str = typer.Argument(..., help="Project to assemble"),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Assemble the finished clips and music into the final video."""
    setup_logging(verbose)
    _assemble(project_id)


@app.command()
def status(
    project_id: str = typer.Argument(..., help="Project to inspect"),
) -> None:
    """Show a project's pipeline state."""
    from .storage import ProjectKeys

    store = _store()
    keys = ProjectKeys(project_id, config.key_prefix)
    try:
        document = asyncio.run(store.get_json(keys.state()))
    except RitzError as e:
        typer.echo(f"❌ Error loading project: {e}")
        raise typer.Exit(1)

    if document is None:
        typer.echo(f"❌ No project found: {project_id}")
        typer.echo("   Run 'ritz create' to start a new project")
        raise typer.Exit(1)

    state = PipelineRunState.from_document(document)
    typer.echo(f"📁 Project: {project_id}")
    _print_state(state)


@app.command()
def projects() -> None:
    """List every project in the asset store."""
    from .pipeline.projects import ProjectCatalog

    catalog = ProjectCatalog(_store())
    summaries = asyncio.run(catalog.list_projects())
    if not summaries:
        typer.echo("No projects yet. Run 'ritz create' to start one.")
        return

    typer.echo(f"📁 Projects ({len(summaries)}):")
    for summary in summaries:
        stage = f", {summary.stage} {summary.progress}%" if summary.stage else ""
        typer.echo(f"   • {summary.id}: {summary.theme} [{summary.status}{stage}]")
        if summary.final_video_url:
            typer.echo(f"     → {summary.final_video_url}")


@app.command()
def delete(
    project_id: str = typer.Argument(..., help="Project to delete"),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt"
    ),
) -> None:
    """Delete a project and all of its assets."""
    from .pipeline.projects import ProjectCatalog

    if not yes:
        typer.confirm(f"Delete project {project_id} and all its assets?", abort=True)

    catalog = ProjectCatalog(_store())
    try:
        removed = asyncio.run(catalog.delete_project(project_id))
    except RitzError as e:
        typer.echo(f"❌ Error deleting project: {e}")
        raise typer.Exit(1)

    if not removed:
        typer.echo(f"⚠️  Nothing stored for {project_id}")
        return
    typer.echo(f"🗑️  Deleted {project_id} ({removed} assets)")


if __name__ == "__main__":
    app()
