"""Advisory progress projection.

Progress is a UI hint derived from the stage and batch position. Nothing
in the pipeline branches on it.
"""

from ..models import PipelineStage

STAGE_PROGRESS = {
    PipelineStage.IDLE: 0,
    PipelineStage.UPLOADING: 2,
    PipelineStage.STORYBOARD: 8,
    PipelineStage.STORYBOARD_REVIEW: 15,
    PipelineStage.GENERATING: 16,
    PipelineStage.MUSIC: 82,
    PipelineStage.MONTAGE: 85,
    PipelineStage.DONE: 100,
}

# Share of the bar covered by shot batches, starting at GENERATING
BATCH_SPAN = 64


def batch_progress(done: int, total: int) -> int:
    """Progress after ``done`` of ``total`` shots went through their batch."""
    base = STAGE_PROGRESS[PipelineStage.GENERATING]
    if total <= 0:
        return base + BATCH_SPAN
    return base + round(min(done, total) / total * BATCH_SPAN)


def stage_for_batch(batch_start: int, total: int) -> PipelineStage:
    """Coarse stage label for the batch starting at ``batch_start``.

    First third reads as generating, middle third as upscaling, last third
    as animating. Shots in every batch still run all three stages.
    """
    if total <= 0:
        return PipelineStage.GENERATING
    ratio = batch_start / total
    if ratio < 0.33:
        return PipelineStage.GENERATING
    if ratio < 0.66:
        return PipelineStage.UPSCALING
    return PipelineStage.ANIMATING
