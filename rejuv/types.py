"""Core data models used across the frame rejuvenation pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .utils.files import content_digest

ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4")
LOG_KEY_STEM_CHARS = 48
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True, slots=True)
class SourceImage:
    """An image extracted from a production archive."""

    file_name: str
    payload: bytes = field(repr=False)
    media_type: str

    @property
    def stem(self) -> str:
        """Archive path up to the first dot, used to pair companion text."""
        return self.file_name.split(".")[0] or "frame"


@dataclass(frozen=True, slots=True)
class TextDocument:
    """A text entry extracted from a production archive."""

    name: str
    content: str


@dataclass(slots=True)
class ProductionArchive:
    """Classified view over everything extracted from the uploaded archives."""

    images: Dict[str, SourceImage] = field(default_factory=dict)
    texts: List[TextDocument] = field(default_factory=list)
    avatars: Dict[str, SourceImage] = field(default_factory=dict)
    scenes: List[SourceImage] = field(default_factory=list)
    full_script: Optional[TextDocument] = None
    story_map: Optional[TextDocument] = None
    style: str = ""


@dataclass(frozen=True, slots=True)
class CharacterMapping:
    """Which character a frame depicts and which avatar should anchor it."""

    character_name: str = "Unknown"
    avatar_filename: Optional[str] = None
    other_characters: Tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> "CharacterMapping":
        """Coerce a structured model response, defaulting malformed fields."""
        if not isinstance(payload, dict):
            return cls()

        name = payload.get("characterName")
        if not isinstance(name, str) or not name.strip():
            name = "Unknown"

        avatar = payload.get("avatarFilename")
        if not isinstance(avatar, str) or not avatar:
            avatar = None

        others = payload.get("otherCharacters")
        if isinstance(others, (list, tuple)):
            other_characters = tuple(str(item) for item in others if isinstance(item, str) and item)
        else:
            other_characters = ()

        return cls(character_name=name.strip(), avatar_filename=avatar, other_characters=other_characters)


@dataclass(slots=True)
class FrameJob:
    """Mutable per-frame state passed between the frame nodes."""

    image: SourceImage
    text_name: str
    snippet: str
    script_context: str = ""
    visual_analysis: str = ""
    mapping: Optional[CharacterMapping] = None
    avatar: Optional[SourceImage] = None
    prompt: str = ""
    output: Optional[bytes] = field(default=None, repr=False)
    timings_ms: Dict[str, int] = field(default_factory=dict)

    @property
    def stem(self) -> str:
        return self.image.stem

    @property
    def output_name(self) -> str:
        return f"{self.stem}_rejuvenated.png"

    @property
    def log_key(self) -> str:
        """Short directory-safe identifier for per-frame run logs, unique per image path."""
        readable = _UNSAFE_KEY_CHARS.sub("_", self.stem)[:LOG_KEY_STEM_CHARS].strip("._") or "frame"
        return f"{readable}-{content_digest(self.image.file_name, 8)}"


@dataclass(slots=True)
class RunReport:
    """Aggregated outcome of a single test or full run."""

    mode: str
    attempted: List[str] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    aborted: bool = False
    halted: bool = False


class RunPhase(str, Enum):
    """Lifecycle phases of the orchestrator."""

    IDLE = "idle"
    UPLOADING = "uploading"
    READY = "ready"
    TESTING = "testing"
    PROCESSING = "processing"
    ERROR = "error"

    @property
    def label(self) -> str:
        """Status line shown to the operator."""
        return _PHASE_LABELS[self]

    @property
    def is_running(self) -> bool:
        return self in (RunPhase.TESTING, RunPhase.PROCESSING)


_PHASE_LABELS = {
    RunPhase.IDLE: "AWAITING ZIP",
    RunPhase.UPLOADING: "UPLOADING...",
    RunPhase.READY: "READY FOR PRODUCTION",
    RunPhase.TESTING: "TESTING...",
    RunPhase.PROCESSING: "PROCESSING...",
    RunPhase.ERROR: "ERROR",
}

_TRANSITIONS = {
    RunPhase.IDLE: {RunPhase.IDLE, RunPhase.UPLOADING},
    RunPhase.UPLOADING: {RunPhase.READY, RunPhase.ERROR},
    RunPhase.READY: {RunPhase.IDLE, RunPhase.UPLOADING, RunPhase.TESTING, RunPhase.PROCESSING},
    RunPhase.TESTING: {RunPhase.READY},
    RunPhase.PROCESSING: {RunPhase.READY},
    RunPhase.ERROR: {RunPhase.IDLE, RunPhase.UPLOADING},
}


class InvalidTransition(RuntimeError):
    """Raised when the orchestrator attempts a transition the phase table forbids."""


LogListener = Callable[[str], None]


@dataclass(slots=True)
class RunState:
    """Process-wide run state owned by the orchestrator."""

    phase: RunPhase = RunPhase.IDLE
    cancel_requested: bool = False
    logs: List[str] = field(default_factory=list)
    progress: str = ""
    archive: Optional[ProductionArchive] = None
    character_bible: str = ""
    listeners: List[LogListener] = field(default_factory=list, repr=False)

    @property
    def is_running(self) -> bool:
        return self.phase.is_running

    @property
    def status(self) -> str:
        """Progress label while running, phase label otherwise."""
        if self.is_running and self.progress:
            return self.progress
        return self.phase.label

    def transition(self, target: RunPhase) -> None:
        """Move to ``target`` or raise if the phase table forbids it."""
        if target not in _TRANSITIONS[self.phase]:
            raise InvalidTransition(f"Cannot move from {self.phase.value} to {target.value}.")
        self.phase = target

    def add_log(self, message: str) -> str:
        """Append a timestamped line and notify observers."""
        line = f"[{datetime.now().strftime('%H:%M:%S')}] {message}"
        self.logs.append(line)
        for listener in list(self.listeners):
            listener(line)
        return line

    def subscribe(self, listener: LogListener) -> None:
        self.listeners.append(listener)

    def clear(self) -> None:
        """Drop everything tied to the previous upload; observers stay attached."""
        self.phase = RunPhase.IDLE
        self.cancel_requested = False
        self.logs.clear()
        self.progress = ""
        self.archive = None
        self.character_bible = ""
