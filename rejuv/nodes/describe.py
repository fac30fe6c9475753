"""Node asking the vision model to describe a rough draft frame."""

from __future__ import annotations

from ..services.base import GenerationService
from ..types import FrameJob
from ..utils.prompts import load_prompt
from .base import BaseNode

VISUAL_ANALYSIS_UNAVAILABLE = "Visual analysis unavailable."


class AnalyzeScene(BaseNode):
    """Wraps the multimodal call that describes subject, pose, lighting and colour."""

    def __init__(self, run_id: str, logger, service: GenerationService) -> None:
        super().__init__(name="AnalyzeScene", run_id=run_id, logger=logger)
        self._service = service

    def run(self, frame: FrameJob) -> FrameJob:
        """Populate ``frame.visual_analysis``; failures fail the frame."""
        prompt = load_prompt("analyze_scene")
        self.log_prompt(prompt, frame)

        analysis = self._service.generate_multimodal_text([frame.image], prompt)
        frame.visual_analysis = (analysis or "").strip() or VISUAL_ANALYSIS_UNAVAILABLE

        self.log_response({"visual_analysis": frame.visual_analysis}, frame)
        return frame
