"""Node attaching the surrounding script excerpt to a frame."""

from __future__ import annotations

from typing import Optional

from ..types import FrameJob
from ..utils.context import resolve_script_context
from .base import BaseNode


class ResolveContext(BaseNode):
    """Windows the full script around the frame's snippet; no remote calls."""

    def __init__(self, run_id: str, logger, full_script: Optional[str]) -> None:
        super().__init__(name="ResolveContext", run_id=run_id, logger=logger)
        self._full_script = full_script

    def run(self, frame: FrameJob) -> FrameJob:
        frame.script_context = resolve_script_context(frame.snippet, self._full_script)
        self.log_response(
            {"text": frame.text_name, "snippet": frame.snippet, "script_context": frame.script_context},
            frame,
        )
        return frame
