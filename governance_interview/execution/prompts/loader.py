"""
Jinja2 loader for prompts and rendered documents.

Two kinds of template live in the templates directory:
- prompts: system prompts for one LLM task, paired with a single user turn
  by `build_messages`;
- documents: markdown rendered directly for the user (the Setup summary),
  through `render_document`.

Partials (file names starting with "_") are only ever included.
Undefined variables raise instead of rendering as empty text, so a missing
context value can never silently drop a governance rule from a prompt.
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .templates import Template

TEMPLATES_DIR = Path(__file__).parent / "templates"
PARTIALS = ("_privacy",)


def _check_templates_exist():
    names = [getattr(Template, attr) for attr in vars(Template) if not attr.startswith("_")]
    missing = [
        name for name in (*names, *PARTIALS)
        if not (TEMPLATES_DIR / f"{name}.jinja2").exists()
    ]
    if missing:
        raise FileNotFoundError(f"Missing prompt templates in {TEMPLATES_DIR}: {', '.join(sorted(missing))}")


_check_templates_exist()


@lru_cache(maxsize=1)
def _environment() -> Environment:
    # Plain text and markdown only: nothing here is served as HTML.
    return Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=False,
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render(template_name: str, **context) -> str:
    """Renders `<template_name>.jinja2` with the given context."""
    if template_name.startswith("_"):
        raise ValueError(f"'{template_name}' is a partial and can only be included")
    return _environment().get_template(f"{template_name}.jinja2").render(**context)


def build_messages(template_name: str, user_content: str, **context) -> List[dict]:
    """
    Chat messages for one structured-output call.

    Args:
        template_name: A prompt template (one of the Template constants)
        user_content: The user's answers, passed verbatim as the user turn
        **context: Variables for the system prompt, including `abstraction_mode`
            for the privacy partial

    Returns:
        [system, user] message dicts
    """
    return [
        {"role": "system", "content": render(template_name, **context)},
        {"role": "user", "content": user_content},
    ]


def render_document(template_name: str, **context) -> str:
    """A user-facing markdown document, without trailing blank lines."""
    return render(template_name, **context).rstrip() + "\n"
