"""
Prompt templates for generation requests.

Each template is a markdown file under reqflow/prompts/ filled in with
str.format(), so JSON examples inside a template write their braces doubled.
Authoring notes go in <!-- --> blocks and never reach the model.
"""

import logging
import re
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

__all__ = ["PromptError", "load_prompt", "render_prompt", "clear_cache", "PROMPTS_DIR"]

_AUTHOR_NOTES = re.compile(r'<!--.*?-->\s*', re.DOTALL)

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


class PromptError(Exception):
    """A template is missing or could not be filled in."""


@lru_cache(maxsize=32)
def load_prompt(name: str) -> str:
    """Template text for name ('routing', 'document', ...), notes removed."""
    path = PROMPTS_DIR / f"{name}.md"
    if not path.exists():
        raise PromptError(f"No template named '{name}' (not found at {path})")

    logger.debug(f"[PROMPT] Loading {name}")
    return _AUTHOR_NOTES.sub('', path.read_text()).lstrip()


def render_prompt(name: str, **values) -> str:
    """
    Fill in template name with values.

    Raises:
        PromptError: Unknown template, or a placeholder with no value
    """
    template = load_prompt(name)
    try:
        return template.format(**values)
    except KeyError as e:
        raise PromptError(
            f"Missing required variable {e} for template '{name}' "
            f"(given: {', '.join(sorted(values)) or 'nothing'})"
        ) from e


def clear_cache():
    load_prompt.cache_clear()
