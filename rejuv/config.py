"""Configuration containers for the frame rejuvenation pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar

from .types import ASPECT_RATIOS

DEFAULT_STYLE = "very black backgrounds, very vibrant colors."


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc


@dataclass(slots=True)
class PipelineConfig:
    """Settings shared by every upload and run of one orchestrator.

    ``REJUV_*`` variables tune the pipeline; vendor credentials keep the
    names their SDKs document.
    """

    env_prefix: ClassVar[str] = "REJUV_"

    output_dir: str = "outputs"
    runs_dir: str = "runs"
    enable_mock_generation: bool = True
    default_style: str = DEFAULT_STYLE
    test_batch_size: int = 4
    aspect_ratio: str = "16:9"
    snippet_header_lines: int = 3
    deepseek_api_key: str | None = None
    deepseek_api_url: str | None = None
    qwen_api_key: str | None = None
    qwen_api_url: str | None = None
    jimeng_api_key: str | None = None
    jimeng_api_secret: str | None = None
    jimeng_api_url: str | None = None

    def __post_init__(self) -> None:
        if self.aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of {ASPECT_RATIOS}, got {self.aspect_ratio!r}.")
        if self.test_batch_size < 1:
            raise ValueError("test_batch_size must be at least 1.")
        if self.snippet_header_lines < 0:
            raise ValueError("snippet_header_lines cannot be negative.")

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a config from the process environment, falling back to the field defaults."""
        prefix = cls.env_prefix
        return cls(
            output_dir=os.getenv(f"{prefix}OUTPUT_DIR", "outputs"),
            runs_dir=os.getenv(f"{prefix}RUNS_DIR", "runs"),
            enable_mock_generation=_env_flag(f"{prefix}ENABLE_MOCKS", True),
            default_style=os.getenv(f"{prefix}DEFAULT_STYLE", DEFAULT_STYLE),
            test_batch_size=_env_int(f"{prefix}TEST_BATCH_SIZE", 4),
            aspect_ratio=os.getenv(f"{prefix}ASPECT_RATIO", "16:9"),
            snippet_header_lines=_env_int(f"{prefix}SNIPPET_HEADER_LINES", 3),
            deepseek_api_key=os.getenv("DEEPSEEK_API_KEY"),
            deepseek_api_url=os.getenv("DEEPSEEK_API_URL"),
            qwen_api_key=os.getenv("QWEN_API_KEY"),
            qwen_api_url=os.getenv("QWEN_API_URL"),
            jimeng_api_key=os.getenv("JIMENG_API_KEY"),
            jimeng_api_secret=os.getenv("JIMENG_API_SECRET"),
            jimeng_api_url=os.getenv("JIMENG_API_URL"),
        )
