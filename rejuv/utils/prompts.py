"""Packaged prompt templates with ``{{ name }}`` placeholders."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Mapping

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "prompts"
_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


@lru_cache(maxsize=None)
def _template(name: str) -> str:
    path = TEMPLATES_DIR / f"{name}.txt"
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"No prompt template named {name!r} in {TEMPLATES_DIR}") from None


def render(template: str, variables: Mapping[str, object]) -> str:
    """Substitute known placeholders; unknown ones stay visible in the logged prompt."""

    def _value(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        value = variables[key]
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_value, template)


def load_prompt(name: str, variables: Mapping[str, object] | None = None) -> str:
    """Return template ``name`` rendered with ``variables`` and stripped."""
    return render(_template(name), variables or {}).strip()
