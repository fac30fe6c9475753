"""Batch orchestration for the frame rejuvenation pipeline."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, TypedDict

from langchain_core.runnables import RunnableLambda
from langgraph.graph import END, START, StateGraph

from .config import PipelineConfig
from .nodes.base import FrameNode, Node
from .nodes.character import ResolveCharacter
from .nodes.character_bible import BuildCharacterBible
from .nodes.context import ResolveContext
from .nodes.describe import AnalyzeScene
from .nodes.ingest import IngestArchives
from .nodes.prompt import ComposePrompt
from .nodes.synthesize import SynthesizeFrame
from .services.base import FileSaver, GenerationService
from .services.studio import StudioService
from .types import (
    FrameJob,
    InvalidTransition,
    LogListener,
    ProductionArchive,
    RunPhase,
    RunReport,
    RunState,
    SourceImage,
)
from .utils.context import derive_snippet, find_paired_text
from .utils.downloads import DirectorySaver
from .utils.run_logger import RunLogger


class FrameGraphState(TypedDict):
    """LangGraph channel layout: a single mutable job handed from node to node."""

    frame: FrameJob


class FrameRejuvenator:
    """High-level facade: upload archives, run a test or full batch, cancel, reset.

    The facade owns the only ``RunState``. Observers attach with
    ``subscribe`` and receive every log line; they never mutate the state.
    Frames run strictly one after another; ``cancel`` only raises a flag that
    is honoured before the next frame starts.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        service: GenerationService | None = None,
        saver: FileSaver | None = None,
    ) -> None:
        self.config = config or PipelineConfig.from_env()
        self.logger = RunLogger(base_dir=self.config.runs_dir)
        self.service = service or StudioService.from_config(self.config)
        self.saver = saver or DirectorySaver(self.config.output_dir)
        self.state = RunState()

    def subscribe(self, listener: LogListener) -> None:
        """Receive every log line as it is appended."""
        self.state.subscribe(listener)

    def upload(self, archives: Iterable[bytes]) -> Optional[ProductionArchive]:
        """Replace all state with the content of ``archives``.

        Returns the classified archive, or None when nothing was supplied or
        extraction failed (the state is then in the error phase).
        """
        payloads = list(archives)
        if not payloads:
            return None
        if self.state.is_running:
            raise InvalidTransition("Cannot upload while a run is in progress.")

        self.reset()
        self.state.transition(RunPhase.UPLOADING)
        self._log(f"Archive detected. Processing {len(payloads)} file(s)...")

        node: Node = IngestArchives(
            run_id=self._new_run_id("upload"),
            logger=self.logger,
            payloads=payloads,
            default_style=self.config.default_style,
        )
        try:
            node.run(self.state)
        except Exception as exc:  # noqa: BLE001 - surfaced through the run log
            self.state.archive = None
            reason = str(exc) or "Please ensure you are uploading valid ZIP archives."
            self._log(f"UPLOAD FAILED: {reason}")
            self.state.transition(RunPhase.ERROR)
            return None

        self.state.transition(RunPhase.READY)
        return self.state.archive

    def reset(self) -> None:
        """Forget the current upload, bible and logs."""
        if self.state.is_running:
            raise InvalidTransition("Cannot reset while a run is in progress.")
        self.state.clear()

    def cancel(self) -> bool:
        """Request a stop at the next frame boundary; a no-op unless running."""
        if not self.state.is_running:
            return False
        self.state.cancel_requested = True
        return True

    def run(self, *, test: bool = False) -> Optional[RunReport]:
        """Process the first ``test_batch_size`` frames (test) or all of them.

        Returns None without side effects when a run is already in progress or
        nothing has been uploaded.
        """
        state = self.state
        if state.is_running or state.phase is not RunPhase.READY or state.archive is None:
            return None

        archive = state.archive
        label = f"TEST RUN ({self.config.test_batch_size} FRAMES)" if test else "FULL PRODUCTION"
        footer = "TEST RUN" if test else "FULL PRODUCTION"
        report = RunReport(mode="test" if test else "full")
        run_id = self._new_run_id(report.mode)

        state.transition(RunPhase.TESTING if test else RunPhase.PROCESSING)
        state.cancel_requested = False
        try:
            self._log(f"--- {label} INITIATED ---")

            if not self._prepare_bible(run_id):
                report.halted = True
                return report

            items = archive.scenes[: self.config.test_batch_size] if test else list(archive.scenes)
            if not items:
                self._log("PROCESS HALTED: No images found in the queue.")
                report.halted = True
                return report

            app = self._build_graph(self._build_frame_nodes(run_id, archive)).compile()
            for index, image in enumerate(items, start=1):
                if state.cancel_requested:
                    self._log("PROCESS ABORTED BY USER.")
                    report.aborted = True
                    break
                state.progress = f"[{index}/{len(items)}] {image.file_name}"
                report.attempted.append(image.file_name)
                self._process_frame(app, run_id, archive, image, report)
        except Exception as exc:
            self._log(f"A CRITICAL ERROR occurred: {exc}")
            raise
        finally:
            state.progress = ""
            state.transition(RunPhase.READY)
            self._log(f"--- {footer} COMPLETED ---")
        return report

    def _prepare_bible(self, run_id: str) -> bool:
        """Build the character bible; False means the run must stop."""
        node: Node = BuildCharacterBible(run_id=run_id, logger=self.logger, service=self.service)
        try:
            node.run(self.state)
        except Exception as exc:  # noqa: BLE001 - fatal to the run, reported through the log
            reason = str(exc).rstrip(".") or exc.__class__.__name__
            self._log(f"CRITICAL ERROR: Failed to generate Character Bible: {reason}. Halting process.")
            return False
        return True

    def _process_frame(
        self,
        app,
        run_id: str,
        archive: ProductionArchive,
        image: SourceImage,
        report: RunReport,
    ) -> None:
        """Run one frame through the graph; every failure stays inside this frame."""
        frame: Optional[FrameJob] = None
        try:
            text = find_paired_text(image, archive.texts)
            if text is None:
                self._log(f"SKIPPED: Missing .txt for {image.file_name}")
                report.skipped.append(image.file_name)
                return

            frame = FrameJob(
                image=image,
                text_name=text.name,
                snippet=derive_snippet(text.content, self.config.snippet_header_lines),
            )
            frame = app.invoke({"frame": frame})["frame"]

            if not frame.output:
                self._log(f"FAILED: No image generated for {image.file_name}")
                report.failed.append(image.file_name)
                return

            self.saver.save(frame.output, frame.output_name)
            report.succeeded.append(frame.output_name)
            self._log(f"SUCCESS: {image.file_name} downloaded.")
        except Exception as exc:  # noqa: BLE001 - one bad frame never stops the batch
            self._log(f"ERROR on {image.file_name}: {str(exc) or exc.__class__.__name__}")
            report.failed.append(image.file_name)
        finally:
            if frame is not None:
                self._trace_frame(run_id, frame)

    def _trace_frame(self, run_id: str, frame: FrameJob) -> None:
        """Persist the frame summary; a failed write is reported and never ends the batch."""
        try:
            self.logger.log_response(
                run_id,
                "FrameSummary",
                {
                    "image": frame.image.file_name,
                    "text": frame.text_name,
                    "prompt": frame.prompt,
                    "avatar": frame.avatar.file_name if frame.avatar else None,
                    "timings_ms": frame.timings_ms,
                },
                frame.log_key,
            )
        except OSError as exc:
            self._log(f"WARNING: Could not write trace for {frame.image.file_name}: {exc}")

    def _build_frame_nodes(self, run_id: str, archive: ProductionArchive) -> Sequence[FrameNode]:
        """Construct the per-frame nodes wired with this run's shared context."""
        bible = self.state.character_bible
        return [
            ResolveContext(
                run_id=run_id,
                logger=self.logger,
                full_script=archive.full_script.content if archive.full_script else None,
            ),
            AnalyzeScene(run_id=run_id, logger=self.logger, service=self.service),
            ResolveCharacter(
                run_id=run_id,
                logger=self.logger,
                service=self.service,
                bible=bible,
                avatars=archive.avatars,
            ),
            ComposePrompt(
                run_id=run_id,
                logger=self.logger,
                service=self.service,
                bible=bible,
                style=archive.style,
                story_map=archive.story_map.content if archive.story_map else None,
            ),
            SynthesizeFrame(
                run_id=run_id,
                logger=self.logger,
                service=self.service,
                aspect_ratio=self.config.aspect_ratio,
            ),
        ]

    def _build_graph(self, nodes: Sequence[FrameNode]) -> StateGraph:
        """Construct a linear LangGraph graph wired with runnable frame nodes."""
        if not nodes:
            raise RuntimeError("Frame graph has no nodes configured.")

        graph = StateGraph(FrameGraphState)
        node_names: List[str] = []
        for node in nodes:
            graph.add_node(
                node.name,
                RunnableLambda(
                    lambda state, *, config=None, _node=node: {"frame": self._invoke_node(_node, state["frame"])}
                ),
                metadata={"kind": node.name, "remote": node.name != "ResolveContext"},
            )
            node_names.append(node.name)

        graph.add_edge(START, node_names[0])
        for previous, current in zip(node_names, node_names[1:]):
            graph.add_edge(previous, current)
        graph.add_edge(node_names[-1], END)
        return graph

    @staticmethod
    def _invoke_node(node: FrameNode, frame: FrameJob) -> FrameJob:
        """Execute a frame node and record how long it took."""
        started = time.perf_counter()
        updated = node.run(frame)
        updated.timings_ms[node.name] = int((time.perf_counter() - started) * 1000)
        return updated

    def _log(self, message: str) -> None:
        self.state.add_log(message)

    @staticmethod
    def _new_run_id(prefix: str) -> str:
        """Return a unique, sortable run identifier."""
        return f"{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S%f')}-{prefix}"
