"""Node drafting the cinematic instruction for a frame."""

from __future__ import annotations

from typing import Optional

from ..services.base import GenerationService
from ..types import CharacterMapping, FrameJob
from ..utils.prompts import load_prompt
from .base import BaseNode

BIBLE_EXCERPT_CHARS = 500
FALLBACK_PROMPT = "Cinematic film frame, professional lighting, detailed characters."
NO_STORY_MAP = "No story map provided. Infer plot progression from transcript."


class ComposePrompt(BaseNode):
    """Synthesises a short cinematic prompt from everything gathered for the frame."""

    def __init__(
        self,
        run_id: str,
        logger,
        service: GenerationService,
        bible: str,
        style: str,
        story_map: Optional[str],
    ) -> None:
        super().__init__(name="ComposePrompt", run_id=run_id, logger=logger)
        self._service = service
        self._bible = bible
        self._style = style
        self._story_map = story_map

    def run(self, frame: FrameJob) -> FrameJob:
        """Set ``frame.prompt``; a failed call degrades to ``FALLBACK_PROMPT``."""
        mapping = frame.mapping or CharacterMapping()
        request = load_prompt(
            "compose_prompt",
            {
                "story_map": self._story_map or NO_STORY_MAP,
                "scene_text": frame.snippet,
                "script_context": frame.script_context,
                "character_name": mapping.character_name,
                "other_characters": ", ".join(mapping.other_characters),
                "character_bible": self._bible[:BIBLE_EXCERPT_CHARS],
                "visual_analysis": frame.visual_analysis,
                "style": self._style,
            },
        )
        self.log_prompt(request, frame)

        error: Optional[str] = None
        try:
            drafted = self._service.generate_text(request)
        except Exception as exc:  # noqa: BLE001 - any failure degrades to the fallback prompt
            drafted = ""
            error = str(exc)

        frame.prompt = (drafted or "").strip() or FALLBACK_PROMPT
        self.log_response({"prompt": frame.prompt, "fallback_reason": error}, frame)
        return frame
