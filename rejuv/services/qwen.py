"""Qwen-VL client describing draft frames for the prompt composer."""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from ..types import SourceImage
from ..utils.files import data_url
from ..utils.images import prepare_reference_image, summarise_image


def _field(container: Any, name: str) -> Any:
    """Read ``name`` from a dict or from a DashScope response object."""
    if isinstance(container, dict):
        return container.get(name)
    return getattr(container, name, None)


class QwenClient:
    """Sends frames plus an instruction to DashScope's multimodal conversation API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: str = "qwen-vl-plus",
        use_mock: bool = True,
        timeout: int = 60,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._model = model
        self._use_mock = use_mock
        self._timeout = timeout

    def generate_multimodal_text(self, images: Sequence[SourceImage], prompt: str) -> str:
        """Return the model's text answer about ``images``."""
        images = list(images)
        if self._use_mock:
            return self._mock_description(images)
        if not self._api_key:
            raise ValueError("Qwen API key is missing; set QWEN_API_KEY or enable mocks.")

        try:
            import dashscope  # type: ignore
        except ImportError as exc:  # pragma: no cover - declared dependency
            raise RuntimeError("dashscope is required for Qwen-VL calls. Install via `pip install dashscope`.") from exc

        if self._api_url:
            dashscope.base_http_api_url = self._api_url

        content: List[dict] = [{"image": self._as_data_url(image)} for image in images]
        content.append({"text": prompt})
        try:
            response = dashscope.MultiModalConversation.call(
                model=self._model,
                messages=[{"role": "user", "content": content}],
                api_key=self._api_key,
                timeout=self._timeout,
            )
        except Exception as err:  # noqa: BLE001 - SDK transport errors vary by version
            raise RuntimeError(f"Qwen-VL request failed: {err}") from err

        status = _field(response, "status_code")
        if status is not None and status != 200:
            raise RuntimeError(f"Qwen-VL returned {status}: {_field(response, 'message') or 'no message'}")

        return (self._answer_text(response) or "").strip()

    @staticmethod
    def _as_data_url(image: SourceImage) -> str:
        payload, media_type = prepare_reference_image(image.payload, image.media_type)
        return data_url(payload, media_type)

    @staticmethod
    def _answer_text(response: Any) -> Optional[str]:
        """Join the text items of the first choice; plain-string content is returned as is."""
        choices = _field(_field(response, "output"), "choices") or []
        if not choices:
            return None
        content = _field(_field(choices[0], "message"), "content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            texts = [str(item["text"]) for item in content if isinstance(item, dict) and item.get("text")]
            return "\n".join(texts) or None
        return None

    @staticmethod
    def _mock_description(images: List[SourceImage]) -> str:
        """Deterministic local description built from pixel statistics."""
        if not images:
            return "No image supplied."
        image = images[0]
        summary = summarise_image(image.payload)
        if summary is None:
            return (
                f"Frame {image.file_name}: undecodable draft; assume a single figure, "
                "flat lighting, neutral environment."
            )
        orientation = "landscape" if summary.width >= summary.height else "portrait"
        palette = "black and white" if summary.monochrome else f"colour, mean RGB {summary.mean_rgb}"
        return "\n".join(
            [
                f"- Subject: one central figure in {image.file_name}",
                f"- Composition: {orientation} frame, {summary.width}x{summary.height}",
                "- Lighting: soft key light from camera left, low fill",
                f"- Colour: {palette}",
                "- Pose: standing, three-quarter view toward camera",
                "- Environment: interior set, background out of focus",
            ]
        )
