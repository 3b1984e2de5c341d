"""Reference video style analysis agent."""

import logging

from anthropic import APIError

from ..errors import ProviderSubmitError
from .base import BaseAgent

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a cinematic video analyst. Analyze the described reference video and extract:
1. Visual style (color palette, lighting, contrast, grain/texture)
2. Camera movements (pan, tilt, dolly, crane, tracking, static, Ken Burns)
3. Transitions (fade, crossfade, cut, dissolve, wipe)
4. Pacing and timing (shot duration, rhythm, tempo)
5. Mood and atmosphere (emotional tone, energy level)
6. Composition patterns (framing, depth of field, rule of thirds)

Be specific and detailed. This analysis will be used to guide AI storyboard generation."""


class StyleAnalysisAgent(BaseAgent[str, str]):
    """Extracts a reusable style description from a reference video description."""

    @property
    def name(self) -> str:
        return "StyleAnalysisAgent"

    @property
    def system_prompt(self) -> str:
        return SYSTEM_PROMPT

    async def run(self, input_data: str) -> str:
        """Analyze a free-text description of a reference video.

        Raises:
            ProviderSubmitError: If the request to Claude fails.
        """
        prompt = (
            "Analyze this reference video for cinematic style replication:\n\n"
            f"{input_data}"
        )
        try:
            analysis = await self._create_message(prompt, max_tokens=2048)
        except APIError as e:
            raise ProviderSubmitError(f"style analysis failed: {e}", provider="anthropic") from e

        self._logger.info(f"Style analysis: {len(analysis)} chars")
        return analysis.strip()
