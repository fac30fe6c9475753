"""Node mapping a frame onto a character of the bible and its reference avatar."""

from __future__ import annotations

from dataclasses import asdict
from typing import Dict, Mapping

from ..services.base import GenerationService
from ..types import CharacterMapping, FrameJob, SourceImage
from ..utils.prompts import load_prompt
from .base import BaseNode

BIBLE_EXCERPT_CHARS = 5_000

CHARACTER_SCHEMA = {
    "type": "object",
    "properties": {
        "characterName": {
            "type": "string",
            "description": "The name of the primary character from the script.",
        },
        "avatarFilename": {
            "type": "string",
            "description": "The matching avatar filename.",
            "nullable": True,
        },
        "otherCharacters": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Other characters in the scene.",
        },
        "reasoning": {"type": "string", "description": "Matching logic."},
    },
    "required": ["characterName", "avatarFilename", "otherCharacters", "reasoning"],
}


class ResolveCharacter(BaseNode):
    """Asks for a structured character decision and resolves the avatar by exact name."""

    def __init__(
        self,
        run_id: str,
        logger,
        service: GenerationService,
        bible: str,
        avatars: Mapping[str, SourceImage],
    ) -> None:
        super().__init__(name="ResolveCharacter", run_id=run_id, logger=logger)
        self._service = service
        self._bible = bible
        self._avatars: Dict[str, SourceImage] = dict(avatars)

    def run(self, frame: FrameJob) -> FrameJob:
        """Set ``frame.mapping`` and ``frame.avatar``.

        Missing or malformed fields fall back to defaults; an avatar name that
        is not an exact key of the avatar set means "no avatar".
        """
        prompt = load_prompt(
            "resolve_character",
            {
                "scene_text": frame.snippet,
                "visual_analysis": frame.visual_analysis,
                "character_bible": self._bible[:BIBLE_EXCERPT_CHARS],
            },
        )
        self.log_prompt(prompt, frame)

        payload = self._service.generate_structured(prompt, CHARACTER_SCHEMA)
        mapping = CharacterMapping.from_payload(payload)
        frame.mapping = mapping
        frame.avatar = self._avatars.get(mapping.avatar_filename) if mapping.avatar_filename else None

        self.log_response(
            {
                "raw": payload,
                "mapping": asdict(mapping),
                "avatar_resolved": frame.avatar.file_name if frame.avatar else None,
            },
            frame,
        )
        return frame
