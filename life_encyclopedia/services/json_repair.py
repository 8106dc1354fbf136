"""Recovery of JSON objects from language model output.

Model responses may arrive fenced in markdown, wrapped in prose, or cut off
mid-structure when the token limit is reached.
"""
from __future__ import annotations

import json
from typing import Any


def strip_fences(text: str) -> str:
    content = text.strip()
    if content.startswith("```"):
        newline = content.find("\n")
        content = content[newline + 1 :] if newline >= 0 else content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def extract_json_text(text: str) -> str:
    """Strip fences, then slice from the first `{` to the last `}` when needed."""
    content = strip_fences(text)
    if not content.startswith("{"):
        start = content.find("{")
        end = content.rfind("}")
        if start >= 0 and end > start:
            content = content[start : end + 1]
        elif start >= 0:
            # Truncated before any closing brace; keep the tail for repair.
            content = content[start:]
    return content


def repair_truncated_json(text: str) -> str:
    """Close an unterminated string, then open arrays, then open objects.

    Balanced input is returned unchanged, so the repair is idempotent.
    """
    open_braces = 0
    open_brackets = 0
    in_string = False
    escaped = False

    for char in text:
        if escaped:
            escaped = False
            continue
        if char == "\\" and in_string:
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            open_braces += 1
        elif char == "}":
            open_braces -= 1
        elif char == "[":
            open_brackets += 1
        elif char == "]":
            open_brackets -= 1

    if not in_string and open_braces <= 0 and open_brackets <= 0:
        return text

    repaired = text
    if in_string:
        repaired += '"'
    repaired += "]" * max(open_brackets, 0)
    repaired += "}" * max(open_braces, 0)
    return repaired


def parse_json_object(raw_text: str) -> dict[str, Any]:
    """Parse a JSON object from raw model output, repairing truncation if needed."""
    text = extract_json_text(raw_text)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = json.loads(repair_truncated_json(text))
    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("not an object", text, 0)
    return parsed
