"""Per-run traces of every prompt sent and every response received."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .files import ensure_dir, write_trace


@dataclass(slots=True)
class StepLogPaths:
    """Where one step writes its prompt and its response."""

    prompt_path: Path
    response_path: Path


class RunLogger:
    """Persists prompts and responses under ``runs/<run_id>[/<frame>]``.

    Run-level steps (the character bible) log directly under the run
    directory; per-frame steps get a sub-directory named after the frame so
    a batch of jobs does not overwrite each other's traces.
    """

    def __init__(self, base_dir: str | Path = "runs") -> None:
        self._base_dir = ensure_dir(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def step_paths(self, run_id: str, step_name: str, frame: str | None = None) -> StepLogPaths:
        """Resolve (and create) the trace directory for a step."""
        run_root = self._base_dir / run_id
        if frame:
            run_root = run_root / frame
        ensure_dir(run_root)
        return StepLogPaths(
            prompt_path=run_root / f"{step_name}-prompt.txt",
            response_path=run_root / f"{step_name}-response.json",
        )

    def log_prompt(self, run_id: str, step_name: str, prompt: str, frame: str | None = None) -> None:
        """Write the prompt exactly as sent."""
        write_trace(self.step_paths(run_id, step_name, frame).prompt_path, prompt)

    def log_response(self, run_id: str, step_name: str, response: Any, frame: str | None = None) -> None:
        """Write the response as pretty-printed JSON."""
        write_trace(self.step_paths(run_id, step_name, frame).response_path, response)
