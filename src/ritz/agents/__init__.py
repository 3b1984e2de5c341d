"""AI agents for storyboard planning."""

from .base import BaseAgent
from .storyboard import StoryboardAgent, StoryboardRequest
from .style import StyleAnalysisAgent

__all__ = ["BaseAgent", "StoryboardAgent", "StoryboardRequest", "StyleAnalysisAgent"]
