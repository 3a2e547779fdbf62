"""Prompt catalog for the reasoning provider.

Prompts live in `prompts/prompts.json` as a nested object. Each skill holds a
`system` and a `user` entry; an entry is a `string.Template` string or a list
of lines joined with newlines. The file is re-read when its mtime changes.
"""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"
_loaded: tuple[int, dict[str, Any]] | None = None


def _catalog() -> dict[str, Any]:
    global _loaded
    mtime_ns = PROMPTS_PATH.stat().st_mtime_ns
    if _loaded is not None and _loaded[0] == mtime_ns:
        return _loaded[1]

    catalog = json.loads(PROMPTS_PATH.read_text(encoding="utf-8"))
    if not isinstance(catalog, dict):
        raise ValueError(f"{PROMPTS_PATH.name} must hold a JSON object")
    _loaded = (mtime_ns, catalog)
    return catalog


def _template(key: str) -> Template:
    node: Any = _catalog()
    for part in key.split("."):
        try:
            node = node[part]
        except (KeyError, TypeError):
            raise KeyError(f"Prompt key not found: {key}") from None
    if isinstance(node, list):
        node = "\n".join(str(line) for line in node)
    if not isinstance(node, str):
        raise TypeError(f"Prompt {key} is a {type(node).__name__}, expected text")
    return Template(node)


def render_prompt(key: str, **values: Any) -> str:
    template = _template(key)
    try:
        return template.substitute(values)
    except KeyError as exc:
        raise KeyError(f"Prompt {key} needs a value for {exc.args[0]!r}") from exc


def render_skill(skill: str, **values: Any) -> tuple[str, str]:
    """Render the (system, user) pair stored under `skill`."""
    return render_prompt(f"{skill}.system", **values), render_prompt(f"{skill}.user", **values)


def clear_prompt_cache() -> None:
    global _loaded
    _loaded = None
