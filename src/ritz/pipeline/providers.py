"""Wiring of concrete providers from configuration."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..agents import StoryboardAgent, StyleAnalysisAgent
from ..config import Config, config
from ..services import (
    Animator,
    AnthropicClient,
    FreepikKlingAnimator,
    FreepikUpscaler,
    GeminiImageGenerator,
    KlingAnimator,
    SunoMusicGenerator,
)
from ..storage import AssetStore
from .orchestrator import PipelineOrchestrator
from .shot import ShotRunner

logger = logging.getLogger(__name__)


def create_animators(settings: Optional[Config] = None) -> List[Animator]:
    """Animator fallback chain: Kling direct, then Freepik Pro, then Freepik Standard.

    Kling direct joins the chain only when its keys are configured.
    """
    settings = settings or config
    chain: List[Animator] = []
    if settings.kling_access_key and settings.kling_secret_key:
        chain.append(KlingAnimator(settings.kling_access_key, settings.kling_secret_key))
    else:
        logger.info("Kling keys not set, animating through Freepik only")
    chain.append(FreepikKlingAnimator("pro", api_key=settings.freepik_api_key))
    chain.append(FreepikKlingAnimator("std", api_key=settings.freepik_api_key))
    return chain


@dataclass
class Pipeline:
    """Configured orchestrator and the runner it drives."""

    orchestrator: PipelineOrchestrator
    shot_runner: ShotRunner


def create_pipeline(store: AssetStore, settings: Optional[Config] = None) -> Pipeline:
    """Build the production pipeline.

    Raises:
        ValueError: If a required credential is missing.
    """
    settings = settings or config
    settings.validate_required()
    settings.validate_generation_required()

    client = AnthropicClient(api_key=settings.anthropic_api_key, model=settings.default_model)
    runner = ShotRunner(
        store=store,
        image_generator=GeminiImageGenerator(
            api_key=settings.gemini_api_key, model=settings.image_model
        ),
        upscaler=FreepikUpscaler(api_key=settings.freepik_api_key),
        animators=create_animators(settings),
        settings=settings,
    )
    orchestrator = PipelineOrchestrator(
        store=store,
        storyboard_generator=StoryboardAgent(client=client, model=settings.default_model),
        shot_runner=runner,
        music_generator=SunoMusicGenerator(api_key=settings.suno_api_key),
        style_analyzer=StyleAnalysisAgent(client=client, model=settings.default_model),
        settings=settings,
    )
    return Pipeline(orchestrator=orchestrator, shot_runner=runner)
