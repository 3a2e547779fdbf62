from __future__ import annotations

import pytest

from marketgap.services.prompt_store import render_prompt, render_skill


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt("analyze.extract.user", niche="home bakers", documents="POST 1")
    assert '"home bakers"' in prompt
    assert "POST 1" in prompt


def test_render_skill_renders_system_with_values():
    system, user = render_skill(
        "validate.identify",
        niche="home bakers",
        problem="pricing cakes",
        gap_keyword="cost calculator",
        max_competitors=3,
    )
    assert "3 most relevant" in system
    assert "cost calculator" in user


@pytest.mark.parametrize(
    "skill",
    ["scout.filter", "analyze.extract", "analyze.rank", "validate.interpret", "brief.generate"],
)
def test_every_skill_has_system_and_user_prompts(skill):
    values = {
        "niche": "n",
        "posts": "p",
        "documents": "d",
        "findings": "f",
        "problem": "p",
        "gap_keyword": "k",
        "checks": "c",
        "top_finding": "t",
        "gap_analysis": "g",
        "competitors": "c",
        "competitor_notes": "cn",
    }
    system, user = render_skill(skill, **values)
    assert "JSON" in system
    assert user


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError):
        render_prompt("missing.prompt.key")


def test_render_prompt_reports_missing_values():
    with pytest.raises(KeyError, match="niche"):
        render_prompt("brief.generate.user")


def test_catalog_reload_after_cache_clear(tmp_path, monkeypatch):
    from marketgap.services import prompt_store

    catalog = tmp_path / "prompts.json"
    catalog.write_text('{"greet": {"user": "Hello ${name}"}}', encoding="utf-8")
    monkeypatch.setattr(prompt_store, "PROMPTS_PATH", catalog)
    prompt_store.clear_prompt_cache()
    try:
        assert prompt_store.render_prompt("greet.user", name="bakers") == "Hello bakers"
    finally:
        monkeypatch.undo()
        prompt_store.clear_prompt_cache()


def test_list_entries_are_joined_and_non_text_entries_rejected(tmp_path, monkeypatch):
    from marketgap.services import prompt_store

    catalog = tmp_path / "prompts.json"
    catalog.write_text(
        '{"greet": {"user": ["Hello ${name}", "Bye"], "limit": 3}}', encoding="utf-8"
    )
    monkeypatch.setattr(prompt_store, "PROMPTS_PATH", catalog)
    prompt_store.clear_prompt_cache()
    try:
        assert prompt_store.render_prompt("greet.user", name="bakers") == "Hello bakers\nBye"
        with pytest.raises(TypeError):
            prompt_store.render_prompt("greet.limit")
        with pytest.raises(KeyError, match="not found"):
            prompt_store.render_prompt("greet.user.deeper")
    finally:
        monkeypatch.undo()
        prompt_store.clear_prompt_cache()
