"""DeepSeek client used for the bible, character decisions and prompt drafting."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional

from ..utils.files import content_digest
from ..utils.prompts import load_prompt

DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class DeepSeekClient:
    """Plain and JSON-constrained chat completions over DeepSeek's OpenAI-compatible API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: str = "deepseek-chat",
        use_mock: bool = True,
        timeout: int = 60,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url or DEEPSEEK_BASE_URL
        self._model = model
        self._use_mock = use_mock
        self._timeout = timeout
        self._client = None

    def generate_text(self, prompt: str) -> str:
        if self._use_mock:
            return self._mock_text(prompt)
        return self._chat(load_prompt("deepseek_system"), prompt, temperature=0.7).strip()

    def generate_structured(self, prompt: str, schema: Mapping[str, Any]) -> Any:
        """Return the decoded JSON answer to ``prompt`` constrained by ``schema``.

        Raises ``ValueError`` when the answer is not JSON; field-level
        validation belongs to the caller.
        """
        if self._use_mock:
            return self._mock_structured(schema)

        system = load_prompt(
            "deepseek_structured_system",
            {"schema": json.dumps(dict(schema), ensure_ascii=False, indent=2)},
        )
        answer = self._chat(system, prompt, temperature=0.2, response_format={"type": "json_object"})
        if not answer.strip():
            return {}
        candidate = self._json_candidate(answer)
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise ValueError(f"DeepSeek answer is not valid JSON: {candidate[:200]!r}") from exc

    def _chat(self, system: str, prompt: str, **options: Any) -> str:
        if not self._api_key:
            raise ValueError("DeepSeek API key is missing; set DEEPSEEK_API_KEY or enable mocks.")

        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]
        completion = self._openai().chat.completions.create(
            model=self._model,
            messages=messages,
            timeout=self._timeout,
            **options,
        )
        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        return content or ""

    def _openai(self):
        if self._client is None:
            try:
                from openai import OpenAI  # type: ignore
            except ImportError as exc:  # pragma: no cover - declared dependency
                raise RuntimeError("openai package is required for DeepSeek calls. Install via `pip install openai`.") from exc
            self._client = OpenAI(api_key=self._api_key, base_url=self._api_url)
        return self._client

    @staticmethod
    def _json_candidate(answer: str) -> str:
        """Pull the JSON object out of a fenced block or surrounding chatter."""
        text = answer.strip()
        fenced = _FENCED_BLOCK.search(text)
        if fenced:
            text = fenced.group(1).strip()
        start, end = text.find("{"), text.rfind("}")
        if 0 <= start < end:
            return text[start : end + 1]
        return text

    @staticmethod
    def _mock_text(prompt: str) -> str:
        """Deterministic offline answer; the digest ties it to its prompt."""
        return (
            f"Mock draft {content_digest(prompt, 8)}: tight low-angle close-up, the character leans "
            "forward with guarded intensity, hard rim light carving the face out of a very black "
            "background, saturated crimson and teal accents, shallow depth of field."
        )

    @staticmethod
    def _mock_structured(schema: Mapping[str, Any]) -> Dict[str, Any]:
        """Return an empty-but-valid record shaped after ``schema``."""
        empty_by_type = {"array": list, "object": dict}
        record: Dict[str, Any] = {}
        for key, field_schema in (schema.get("properties") or {}).items():
            if field_schema.get("nullable"):
                record[key] = None
            elif field_schema.get("type") in empty_by_type:
                record[key] = empty_by_type[field_schema["type"]]()
            else:
                record[key] = "Mock response; no model consulted." if key == "reasoning" else ""
        return record
