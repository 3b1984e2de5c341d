"""Tests for the persisted and reviewable models."""

import yaml

from ritz.models import AspectFormat, PipelineRunState, Shot, Storyboard


def test_storyboard_review_yaml(tmp_path):
    storyboard = Storyboard(
        shots=[
            Shot(index=0, name="harbor", image_prompt="boats", video_url="ignored"),
            Shot(index=1, name="fog", image_prompt="beam", motion_prompt="crane up"),
        ],
        music_prompt="[Intro] piano",
        music_style="Cinematic",
    )
    path = tmp_path / "storyboard.yaml"
    storyboard.to_yaml(path)

    data = yaml.safe_load(path.read_text())
    assert list(data) == ["music_prompt", "music_style", "shots"]
    assert "video_url" not in data["shots"][0]

    # A reviewer drops the first shot
    data["shots"] = data["shots"][1:]
    path.write_text(yaml.safe_dump(data))
    edited = Storyboard.from_yaml(path)

    assert [(s.index, s.name, s.motion_prompt) for s in edited.shots] == [(0, "fog", "crane up")]
    assert edited.music_style == "Cinematic"


def test_run_state_document_uses_camel_case():
    state = PipelineRunState(
        project_id="p1",
        shots=[Shot(index=0, image_url="u", fail_error=None)],
        music_task_id="m1",
        format=AspectFormat.SQUARE,
    )
    document = state.to_document()

    assert document["musicTaskId"] == "m1"
    assert document["shots"][0]["imageUrl"] == "u"
    assert document["format"] == "1:1"
    assert PipelineRunState.from_document(document) == state


def test_aspect_resolutions():
    assert AspectFormat.WIDE.resolution == (1920, 1080)
    assert AspectFormat.TALL.resolution == (1080, 1920)
    assert AspectFormat.SQUARE.resolution == (1080, 1080)
