"""Node generating the character bible from the full script and avatar names."""

from __future__ import annotations

from ..services.base import GenerationService
from ..types import RunState
from ..utils.prompts import load_prompt
from .base import BaseNode

SCRIPT_PREFIX_CHARS = 10_000
BIBLE_UNAVAILABLE = "Character Bible generation failed."


class BuildCharacterBible(BaseNode):
    """Produce the natural-language character bible shared by every frame of a run."""

    def __init__(self, run_id: str, logger, service: GenerationService) -> None:
        super().__init__(name="BuildCharacterBible", run_id=run_id, logger=logger)
        self._service = service

    def run(self, state: RunState) -> RunState:
        """Set ``state.character_bible``; an empty answer degrades to ``BIBLE_UNAVAILABLE``, errors propagate."""
        archive = state.archive
        if archive is None or archive.full_script is None or not archive.avatars:
            state.character_bible = ""
            state.add_log("WARNING: Cannot generate Character Bible. Missing full script or avatars.")
            return state

        state.add_log("Generating Character Bible from script...")
        prompt = load_prompt(
            "character_bible",
            {
                "avatar_filenames": ", ".join(archive.avatars),
                "script": archive.full_script.content[:SCRIPT_PREFIX_CHARS],
            },
        )
        self.log_prompt(prompt)

        bible = (self._service.generate_text(prompt) or "").strip() or BIBLE_UNAVAILABLE
        state.character_bible = bible
        state.add_log("Character Bible successfully generated.")

        self.log_response({"character_bible": bible})
        return state
