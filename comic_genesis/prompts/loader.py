"""
Prompt loader with versioning and domain organization support.

Prompts live in YAML files under a versioned directory:

    v1/
    ├── story/        # Character profiles, manga script
    └── rendering/    # Title, page and conclusion image prompts

Usage:
    from comic_genesis.prompts.loader import get_prompt, render_prompt

    template = get_prompt("prompt_manga_script")
    rendered = render_prompt("prompt_character_profiles", story="...", style="Shonen")
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined, meta

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).resolve().parent
_VERSION = "v1"

_DOMAIN_DIRS = [
    "story",
    "rendering",
]


@lru_cache(maxsize=1)
def _jinja_env() -> Environment:
    """Create Jinja2 environment for prompt rendering."""
    return Environment(
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


@lru_cache(maxsize=1)
def _load_prompts() -> dict[str, Any]:
    """Load prompts from the versioned directory structure.

    Template syntax errors are raised rather than skipped so a broken
    prompt fails at startup, not mid-run.
    """
    prompts: dict[str, Any] = {}
    version_dir = _PROMPTS_DIR / _VERSION

    for domain in _DOMAIN_DIRS:
        domain_dir = version_dir / domain
        if not domain_dir.exists():
            continue

        for yaml_file in sorted(domain_dir.glob("*.yaml")):
            with yaml_file.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            if not isinstance(data, dict):
                logger.warning("Skipping %s: top level is not a mapping", yaml_file)
                continue

            for key, value in data.items():
                if isinstance(value, str):
                    try:
                        _jinja_env().parse(value)
                    except Exception as e:  # TemplateSyntaxError or others
                        raise ValueError(f"Invalid Jinja2 template in {yaml_file}:{key}: {e}") from e

            prompts.update(data)

    return prompts


def get_prompt(name: str) -> str:
    """
    Get a prompt template by name.

    Raises:
        KeyError: If prompt not found or not a string
    """
    value = _load_prompts().get(name)
    if isinstance(value, str):
        return value
    raise KeyError(f"Prompt '{name}' not found or not a string")


def template_variables(name: str) -> set[str]:
    """Return the undeclared variables a prompt template expects."""
    parsed = _jinja_env().parse(get_prompt(name))
    return meta.find_undeclared_variables(parsed)


def render_prompt(name: str, **context: Any) -> str:
    """
    Render a prompt template with the given context.

    Raises:
        jinja2.UndefinedError: If the template references a missing variable
    """
    template = get_prompt(name)
    return _jinja_env().from_string(template).render(**context).strip()


def list_prompts(domain: str | None = None) -> list[str]:
    """List available prompt names, optionally for one domain."""
    if domain is None:
        return list(_load_prompts().keys())

    domain_dir = _PROMPTS_DIR / _VERSION / domain
    if not domain_dir.exists():
        return []

    names: list[str] = []
    for yaml_file in sorted(domain_dir.glob("*.yaml")):
        with yaml_file.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if isinstance(data, dict):
            names.extend(data.keys())
    return names
