from __future__ import annotations

import html
from functools import lru_cache
from pathlib import Path
from string import Template
from typing import Any


TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


@lru_cache(maxsize=None)
def _load(filename: str) -> Template | None:
    path = TEMPLATE_DIR / filename
    if not path.is_file():
        return None
    return Template(path.read_text(encoding="utf-8"))


def render_template(filename: str, context: dict[str, Any]) -> str:
    """Substitute ``$name`` placeholders; values are escaped unless the key ends in ``_html``."""
    template = _load(filename)
    if template is None:
        return "<h1>Template missing</h1>"
    normalized = {}
    for key, value in context.items():
        text = "" if value is None else str(value)
        normalized[key] = text if key.endswith("_html") else html.escape(text)
    return template.safe_substitute(normalized)
