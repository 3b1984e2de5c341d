"""Storyboard agent for shot planning."""

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from anthropic import APIError
from pydantic import ValidationError

from ..errors import ProviderFailedError, ProviderSubmitError
from ..models import Shot, Storyboard
from ..services.base import ReferenceImage, StoryboardGenerator
from .base import BaseAgent

logger = logging.getLogger(__name__)

VIDEO_LENGTH = 30

SYSTEM_PROMPT = """You are a cinematic storyboard director. Given a theme and optional reference images, create exactly {num_shots} shots for a {video_length}-second cinematic video (~{shot_duration}s per shot).

For each shot, provide:
1. A name (short, descriptive)
2. An image generation prompt (detailed, for image AI - describe composition, lighting, camera angle, mood)
3. A motion prompt (for video AI - describe camera movement and subtle animations)
4. A music cue (what the music should feel like at this point)

Also provide a single music generation prompt and style for the full track (instrumental, cinematic).

IMPORTANT RULES:
- PEOPLE AND CHARACTERS: Most shots MUST feature human characters prominently (faces, hands, expressions, gestures). Show the protagonist(s), their emotions, their actions.
- If reference images are provided, ANALYZE them carefully and incorporate their visual style, color palette, lighting, composition, and mood into your image prompts.
- Maintain visual consistency across all shots (same characters, same style, same color palette).
- Describe characters in detail in EVERY shot they appear in (clothing, appearance, position) for AI image consistency.{style_context}

Respond in valid JSON only, no markdown."""

RESPONSE_SHAPE = """{
  "shots": [
    {
      "index": 0,
      "name": "shot_name",
      "imagePrompt": "detailed image generation prompt...",
      "motionPrompt": "camera/motion description for video animation...",
      "musicCue": "what music does here..."
    }
  ],
  "musicPrompt": "[Intro]\\n(description)\\n\\n[Build]\\n(description)\\n\\n[Crescendo]\\n(description)\\n\\n[Outro]\\n(description)",
  "musicStyle": "Genre, Instruments, Mood descriptors"
}"""


@dataclass
class StoryboardRequest:
    """Input data for the storyboard agent."""

    theme: str
    num_shots: int = 6
    reference_images: List[ReferenceImage] = field(default_factory=list)
    style_analysis: Optional[str] = None


class StoryboardAgent(BaseAgent[StoryboardRequest, Storyboard], StoryboardGenerator):
    """Agent that turns a theme into a storyboard.

    Reference images are sent as image blocks ahead of the text prompt so
    Claude can match their style. An optional prior style analysis (see
    StyleAnalysisAgent) is folded into the system prompt.
    """

    @property
    def name(self) -> str:
        """Return the agent's name."""
        return "StoryboardAgent"

    @property
    def system_prompt(self) -> str:
        """Return the system prompt template for storyboard generation."""
        return SYSTEM_PROMPT

    async def generate(
        self,
        theme: str,
        num_shots: int,
        reference_images: List[ReferenceImage],
        prior_style_analysis: Optional[str] = None,
    ) -> Storyboard:
        return await self.run(
            StoryboardRequest(
                theme=theme,
                num_shots=num_shots,
                reference_images=list(reference_images),
                style_analysis=prior_style_analysis,
            )
        )

    async def run(self, input_data: StoryboardRequest) -> Storyboard:
        """Generate a storyboard.

        Args:
            input_data: Theme, shot count, reference images and style analysis.

        Returns:
            Storyboard with contiguous shot indices.

        Raises:
            ProviderSubmitError: If the request to Claude fails.
            ProviderFailedError: If the response cannot be parsed as a storyboard.
        """
        self._logger.info(
            f"Generating storyboard for: '{input_data.theme}' "
            f"({input_data.num_shots} shots, {len(input_data.reference_images)} refs)"
        )

        try:
            response = await self._create_message(
                prompt=self._build_content(input_data),
                max_tokens=4096,
                temperature=0.8,
                system=self._build_system_prompt(input_data),
            )
        except APIError as e:
            raise ProviderSubmitError(f"storyboard request failed: {e}", provider="anthropic") from e

        storyboard = self._parse_response(response)
        self._logger.info(f"Generated {len(storyboard.shots)} shots")
        return storyboard

    def _build_system_prompt(self, input_data: StoryboardRequest) -> str:
        style_context = ""
        if input_data.style_analysis:
            style_context = (
                "\n\nREFERENCE VIDEO ANALYSIS (replicate this cinematic style):\n"
                f"{input_data.style_analysis}\n\n"
                "Use the exact same visual style, camera movements, transitions, "
                "pacing, and mood described above."
            )
        return self.system_prompt.format(
            num_shots=input_data.num_shots,
            video_length=VIDEO_LENGTH,
            shot_duration=round(VIDEO_LENGTH / max(1, input_data.num_shots)),
            style_context=style_context,
        )

    def _build_content(self, input_data: StoryboardRequest) -> List[dict]:
        """Build image blocks followed by the text prompt."""
        blocks: List[dict] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": ref.mime_type,
                    "data": base64.b64encode(ref.data).decode("ascii"),
                },
            }
            for ref in input_data.reference_images
        ]

        lines = [f"Theme: {input_data.theme}", ""]
        if input_data.reference_images:
            lines.extend([
                "The images above are reference images provided by the user. "
                "Analyze their visual style, color palette, lighting, mood, and composition carefully.",
                "",
                f"Generate a cinematic storyboard with {input_data.num_shots} shots that "
                "maintains the visual consistency of these reference images. Return JSON:",
            ])
        else:
            lines.append(
                f"Generate a cinematic storyboard with {input_data.num_shots} shots. Return JSON:"
            )
        lines.append(RESPONSE_SHAPE)

        blocks.append({"type": "text", "text": "\n".join(lines)})
        return blocks

    def _parse_response(self, response: str) -> Storyboard:
        """Parse Claude's response into a Storyboard.

        Raises:
            ProviderFailedError: If response cannot be parsed as valid JSON with shots.
        """
        json_str = self._extract_json(response)

        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            self._logger.error(f"Failed to parse JSON: {e}")
            self._logger.debug(f"Raw response: {response}")
            raise ProviderFailedError(f"invalid JSON in storyboard: {e}", provider="anthropic")

        if not isinstance(data, dict) or not isinstance(data.get("shots"), list):
            raise ProviderFailedError("response does not contain a shots array", provider="anthropic")
        if not data["shots"]:
            raise ProviderFailedError("storyboard has no shots", provider="anthropic")

        try:
            shots = [
                Shot.model_validate({**shot_data, "index": i})
                for i, shot_data in enumerate(data["shots"])
            ]
        except (TypeError, ValidationError) as e:
            raise ProviderFailedError(f"malformed shot in storyboard: {e}", provider="anthropic")

        return Storyboard(
            shots=shots,
            music_prompt=str(data.get("musicPrompt", "")),
            music_style=str(data.get("musicStyle", "")),
        )

    def _extract_json(self, response: str) -> str:
        """Extract JSON from a response that may contain markdown or other text."""
        # Try to find JSON in code blocks
        if "```json" in response:
            start = response.find("```json") + 7
            end = response.find("```", start)
            if end > start:
                return response[start:end].strip()

        if "```" in response:
            start = response.find("```") + 3
            end = response.find("```", start)
            if end > start:
                return response[start:end].strip()

        # Try to find a raw JSON object
        start = response.find("{")
        if start != -1:
            depth = 0
            in_string = False
            escaped = False
            for i, char in enumerate(response[start:], start):
                if in_string:
                    if escaped:
                        escaped = False
                    elif char == "\\":
                        escaped = True
                    elif char == '"':
                        in_string = False
                elif char == '"':
                    in_string = True
                elif char == "{":
                    depth += 1
                elif char == "}":
                    depth -= 1
                    if depth == 0:
                        return response[start:i + 1]

        # Return as-is if no JSON structure found
        return response.strip()
