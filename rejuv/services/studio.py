"""Default generation service routing each remote operation to a vendor client."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from ..config import PipelineConfig
from ..types import SourceImage
from .base import RequestPart
from .deepseek import DeepSeekClient
from .jimeng import JimengClient
from .qwen import QwenClient


class StudioService:
    """DeepSeek for text and JSON, Qwen-VL for image understanding, 即梦 for image generation."""

    def __init__(self, deepseek: DeepSeekClient, qwen: QwenClient, jimeng: JimengClient) -> None:
        self.deepseek = deepseek
        self.qwen = qwen
        self.jimeng = jimeng

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "StudioService":
        """Instantiate the vendor clients once; every run reuses them."""
        return cls(
            deepseek=DeepSeekClient(
                api_key=config.deepseek_api_key,
                api_url=config.deepseek_api_url,
                use_mock=config.enable_mock_generation,
            ),
            qwen=QwenClient(
                api_key=config.qwen_api_key,
                api_url=config.qwen_api_url,
                use_mock=config.enable_mock_generation,
            ),
            jimeng=JimengClient(
                api_key=config.jimeng_api_key,
                api_secret=config.jimeng_api_secret,
                api_url=config.jimeng_api_url,
                use_mock=config.enable_mock_generation,
            ),
        )

    def generate_text(self, prompt: str) -> str:
        return self.deepseek.generate_text(prompt)

    def generate_structured(self, prompt: str, schema: Mapping[str, Any]) -> Any:
        return self.deepseek.generate_structured(prompt, schema)

    def generate_multimodal_text(self, images: Sequence[SourceImage], prompt: str) -> str:
        return self.qwen.generate_multimodal_text(images, prompt)

    def generate_image(self, parts: Sequence[RequestPart], aspect_ratio: str = "16:9") -> Optional[bytes]:
        return self.jimeng.generate_image(parts, aspect_ratio)
