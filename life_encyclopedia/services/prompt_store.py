"""Prompt catalog backed by prompts/prompts.json.

Entries are either strings or lists of lines (joined with newlines) and are
rendered with `string.Template`, so literal dollar signs must be written `$$`.
"""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"
_cache: tuple[int, dict[str, Any]] | None = None


def _catalog() -> dict[str, Any]:
    global _cache
    mtime_ns = PROMPTS_PATH.stat().st_mtime_ns
    if _cache is not None and _cache[0] == mtime_ns:
        return _cache[1]

    payload = json.loads(PROMPTS_PATH.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Prompt catalog must be a JSON object.")
    _cache = (mtime_ns, payload)
    return payload


def get_prompt(key: str) -> str:
    node: Any = _catalog()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(f"Prompt key not found: {key}")
        node = node[part]
    if isinstance(node, list) and all(isinstance(line, str) for line in node):
        return "\n".join(node)
    if not isinstance(node, str):
        raise TypeError(f"Prompt key must map to a string or list of lines: {key}")
    return node


def render_prompt(key: str, **values: Any) -> str:
    template = Template(get_prompt(key))
    try:
        return template.substitute(**values)
    except KeyError as exc:
        missing = str(exc.args[0])
        raise KeyError(f"Missing template value '{missing}' for prompt '{key}'") from exc


def clear_prompt_cache() -> None:
    global _cache
    _cache = None
