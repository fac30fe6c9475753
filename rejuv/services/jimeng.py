"""即梦 (Jimeng) client for reference-guided frame generation."""

from __future__ import annotations

import json
import os
import time
from typing import Any, Callable, Dict, FrozenSet, Iterator, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests

from ..types import ASPECT_RATIOS, SourceImage
from ..utils.files import content_digest, decode_b64, encode_b64
from ..utils.images import prepare_reference_image, render_placeholder
from .base import RequestPart

JIMENG_REQ_KEY = "jimeng_t2i_v40"
ASPECT_RATIO_SIZES: Dict[str, Tuple[int, int]] = {
    "1:1": (1328, 1328),
    "16:9": (1664, 936),
    "9:16": (936, 1664),
    "4:3": (1472, 1104),
    "3:4": (1104, 1472),
}
_MOCK_SCALE = 8

_SUCCESS_CODES: FrozenSet[str] = frozenset({"0", "10000"})
_FAILED_STATES: FrozenSet[str] = frozenset({"not_found", "expired", "failed", "error"})
# Response keys are compared with underscores removed and lower-cased.
_TASK_ID_KEYS: FrozenSet[str] = frozenset({"taskid"})
_STATUS_KEYS: FrozenSet[str] = frozenset({"status"})
_MESSAGE_KEYS: FrozenSet[str] = frozenset({"message", "errormessage"})
_BASE64_KEYS: FrozenSet[str] = frozenset({"binarydatabase64", "imagebase64", "b64json"})
_URL_KEYS: FrozenSet[str] = frozenset({"imageurls", "imageurl", "urls", "url"})


def _iter_fields(node: Any) -> Iterator[Tuple[str, Any]]:
    """Yield every (normalised key, value) pair of a nested JSON response."""
    pending = [node]
    while pending:
        item = pending.pop(0)
        if isinstance(item, dict):
            for key, value in item.items():
                yield str(key).replace("_", "").lower(), value
                if isinstance(value, (dict, list)):
                    pending.append(value)
        elif isinstance(item, list):
            pending.extend(value for value in item if isinstance(value, (dict, list)))


def _first_field(response: Any, keys: FrozenSet[str]) -> Optional[str]:
    """First non-empty string stored under one of ``keys``, looking inside lists too."""
    for key, value in _iter_fields(response):
        if key not in keys:
            continue
        if isinstance(value, str) and value:
            return value
        if isinstance(value, list):
            found = next((item for item in value if isinstance(item, str) and item), None)
            if found:
                return found
    return None


def _check_response(response: Any, action: str) -> Dict[str, Any]:
    """Raise ``RuntimeError`` for business or gateway errors reported by the CV API."""
    if not isinstance(response, dict):
        raise RuntimeError(f"{action} returned {type(response).__name__}, expected a JSON object.")

    code = response.get("code", response.get("Code"))
    if code is not None and str(code) not in _SUCCESS_CODES:
        message = response.get("message") or response.get("Message") or "unknown error"
        raise RuntimeError(f"{action} failed [{code}]: {message}")

    metadata = response.get("ResponseMetadata")
    error = metadata.get("Error") if isinstance(metadata, dict) else None
    if isinstance(error, dict) and str(error.get("Code") or "").lower() not in {"", "0", "ok", "success"}:
        raise RuntimeError(f"{action} failed [{error.get('Code')}]: {error.get('Message', '')}")
    return response


class JimengClient:
    """Generates frames through the 即梦 text/image-to-image task API.

    With ``use_mock`` the client renders a small deterministic PNG instead,
    keyed on the prompt, so a whole batch can run offline.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        api_url: Optional[str] = None,
        req_key: str = JIMENG_REQ_KEY,
        use_mock: bool = True,
        timeout: int = 120,
        poll_interval: float = 2.0,
        max_poll_attempts: int = 300,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret or os.getenv("JIMENG_API_SECRET")
        self._api_url = api_url
        self._req_key = req_key
        self._use_mock = use_mock
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._visual_service = None

        # Accept a combined "AK:SK" credential.
        if not self._api_secret and self._api_key and ":" in self._api_key:
            self._api_key, self._api_secret = self._api_key.split(":", 1)

    def generate_image(self, parts: Sequence[RequestPart], aspect_ratio: str = "16:9") -> Optional[bytes]:
        """Generate one image from text and reference parts.

        Returns ``None`` when the task finishes without producing an image.
        """
        if aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio {aspect_ratio!r}; expected one of {ASPECT_RATIOS}.")

        form = self.build_form(parts, aspect_ratio)
        if self._use_mock:
            return self._render_mock(form, aspect_ratio)

        result = self._submit_and_wait(form)
        return self._image_from_response(result)

    def build_form(self, parts: Sequence[RequestPart], aspect_ratio: str) -> Dict[str, Any]:
        """Translate ordered request parts into the submit form; images keep their order."""
        prompt_lines = []
        references = []
        for part in parts:
            if isinstance(part, SourceImage):
                payload, _ = prepare_reference_image(part.payload, part.media_type)
                references.append(encode_b64(payload))
            elif isinstance(part, str) and part.strip():
                prompt_lines.append(part.strip())

        width, height = ASPECT_RATIO_SIZES[aspect_ratio]
        form: Dict[str, Any] = {
            "req_key": self._req_key,
            "prompt": "\n".join(prompt_lines),
            "width": width,
            "height": height,
            "seed": -1,
        }
        if references:
            form["binary_data_base64"] = references
        return form

    def _render_mock(self, form: Dict[str, Any], aspect_ratio: str) -> bytes:
        width, height = ASPECT_RATIO_SIZES[aspect_ratio]
        seed = content_digest(form["prompt"]).encode("ascii")
        label = f"{aspect_ratio} refs={len(form.get('binary_data_base64', []))}"
        return render_placeholder(seed, (width // _MOCK_SCALE, height // _MOCK_SCALE), label)

    def _submit_and_wait(self, form: Dict[str, Any]) -> Dict[str, Any]:
        service = self._get_visual_service()
        submitted = _check_response(service.cv_sync2async_submit_task(form), "CVSync2AsyncSubmitTask")
        task_id = _first_field(submitted, _TASK_ID_KEYS)
        if not task_id:
            raise ValueError(f"CVSync2AsyncSubmitTask response missing task_id: {submitted}")
        return self._poll_result(task_id, service.cv_sync2async_get_result)

    def _poll_result(self, task_id: str, fetch: Callable[[Dict[str, Any]], Any]) -> Dict[str, Any]:
        """Poll the task result until it carries an image or reaches a terminal state."""
        query = {
            "req_key": self._req_key,
            "task_id": task_id,
            "req_json": json.dumps({"return_url": True}),
        }
        for _ in range(self._max_poll_attempts):
            result = _check_response(fetch(query), "CVSync2AsyncGetResult")
            status = (_first_field(result, _STATUS_KEYS) or "").lower()
            if status in _FAILED_STATES:
                message = _first_field(result, _MESSAGE_KEYS) or "task failed"
                raise RuntimeError(f"Jimeng task {task_id} ended with status {status}: {message}")
            if status == "done" or _first_field(result, _BASE64_KEYS | _URL_KEYS):
                return result
            time.sleep(self._poll_interval)
        raise TimeoutError(f"Jimeng task {task_id} not ready after {self._max_poll_attempts} polls.")

    def _image_from_response(self, response: Dict[str, Any]) -> Optional[bytes]:
        """Inline base64 wins over a download URL; neither means no image."""
        encoded = _first_field(response, _BASE64_KEYS)
        if encoded:
            return decode_b64(encoded)
        url = _first_field(response, _URL_KEYS)
        if url:
            download = requests.get(url, timeout=self._timeout)
            download.raise_for_status()
            return download.content
        return None

    def _get_visual_service(self):
        if not self._api_key or not self._api_secret:
            raise ValueError("Jimeng access key or secret is missing; cannot call the real service.")
        if self._visual_service is not None:
            return self._visual_service

        try:
            from volcengine.visual.VisualService import VisualService  # type: ignore
        except ImportError as exc:  # pragma: no cover - declared dependency
            raise RuntimeError("volcengine SDK is required for image generation. Install via `pip install volcengine`.") from exc

        service = VisualService()
        service.set_ak(self._api_key)
        service.set_sk(self._api_secret)
        if self._api_url:
            parsed = urlparse(self._api_url)
            if parsed.scheme:
                service.set_scheme(parsed.scheme)
            host = parsed.netloc or parsed.path
            if host:
                service.set_host(host)
        service.set_connection_timeout(self._timeout)
        service.set_socket_timeout(self._timeout)
        self._visual_service = service
        return service
