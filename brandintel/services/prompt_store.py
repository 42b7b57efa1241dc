from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    """Dotted-key view over a JSON prompt file, reloaded when the file changes.

    Entries are ``string.Template`` strings or lists of them; ``$$`` is a
    literal dollar sign.
    """

    def __init__(self, path: Path = PROMPTS_PATH):
        self.path = path
        self._entries: dict[str, Any] | None = None
        self._mtime_ns: int | None = None

    def entries(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._entries is None or self._mtime_ns != mtime_ns:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError(f"Prompt catalog {self.path} must be a JSON object.")
            self._entries = payload
            self._mtime_ns = mtime_ns
        return self._entries

    def lookup(self, key: str) -> Any:
        node: Any = self.entries()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        return node

    def render(self, key: str, **values: Any) -> str:
        entry = self.lookup(key)
        if not isinstance(entry, str):
            raise TypeError(f"Prompt key must map to a string: {key}")
        return _fill(key, entry, values)

    def render_list(self, key: str, **values: Any) -> list[str]:
        entry = self.lookup(key)
        if not isinstance(entry, list) or not all(isinstance(item, str) for item in entry):
            raise TypeError(f"Prompt key must map to a list of strings: {key}")
        return [_fill(key, item, values) for item in entry]

    def clear(self) -> None:
        self._entries = None
        self._mtime_ns = None


def _fill(key: str, text: str, values: dict[str, Any]) -> str:
    try:
        return Template(text).substitute(**values)
    except KeyError as exc:
        raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc


catalog = PromptCatalog()


def render_prompt(key: str, **values: Any) -> str:
    return catalog.render(key, **values)


def render_prompt_list(key: str, **values: Any) -> list[str]:
    """Render every string of a list entry, such as ordered instructions."""
    return catalog.render_list(key, **values)
