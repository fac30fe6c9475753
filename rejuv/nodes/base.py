"""Contracts for run-level and per-frame nodes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from ..types import FrameJob, RunState
from ..utils.run_logger import RunLogger


class Node(Protocol):
    """A run-level unit of work that mutates the shared run state."""

    name: str

    def run(self, state: RunState) -> RunState:
        ...


class FrameNode(Protocol):
    """A per-frame unit of work wired into the frame graph."""

    name: str

    def run(self, frame: FrameJob) -> FrameJob:
        ...


@dataclass(slots=True)
class BaseNode:
    """Shared fields of every node plus helpers writing its prompt and response traces."""

    name: str
    run_id: str
    logger: RunLogger

    def log_prompt(self, prompt: str, frame: Optional[FrameJob] = None) -> None:
        """Trace the prompt for this step."""
        self.logger.log_prompt(self.run_id, self.name, prompt, frame.log_key if frame else None)

    def log_response(self, response: object, frame: Optional[FrameJob] = None) -> None:
        """Trace the response for this step."""
        self.logger.log_response(self.run_id, self.name, response, frame.log_key if frame else None)
