from __future__ import annotations

import pytest

from life_encyclopedia.services.prompt_store import get_prompt, render_prompt


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt("synthesizer.system_prompt", name="Ada Lovelace")
    assert "Ada Lovelace" in prompt
    assert "$name" not in prompt


def test_list_entries_are_joined_with_newlines():
    assert "\n" in get_prompt("classifier.system_prompt")


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError):
        render_prompt("missing.prompt.key")


def test_render_prompt_reports_missing_values():
    with pytest.raises(KeyError, match="context"):
        render_prompt("synthesizer.user_prompt", name="Ada Lovelace")
