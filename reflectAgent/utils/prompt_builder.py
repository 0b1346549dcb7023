"""Prompt template builder.

Prompts live as Jinja2 templates under reflectAgent/config/prompt_templates and
are rendered in a sandboxed environment.
"""

from functools import lru_cache
from pathlib import Path

from jinja2.sandbox import SandboxedEnvironment

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "config" / "prompt_templates"


class PromptBuilder:
    """Loads and renders prompt templates."""

    IDENTITY_TEMPLATE = "identity.jinja2"
    PLANNER_TEMPLATE = "planner.jinja2"
    EXECUTOR_TEMPLATE = "executor.jinja2"
    SIMPLE_RESPONSE_TEMPLATE = "simple_response.jinja2"
    REFLECTOR_TEMPLATE = "reflector.jinja2"
    CHAT_TEMPLATE = "chat.jinja2"

    _env = SandboxedEnvironment(keep_trailing_newline=False)

    @staticmethod
    @lru_cache(maxsize=None)
    def _load_template(name: str) -> str:
        with open(TEMPLATE_DIR / name, "r", encoding="utf-8") as f:
            return f.read()

    @classmethod
    def render(cls, name: str, **params) -> str:
        """Render a template with ``identity`` always available."""
        if name != cls.IDENTITY_TEMPLATE:
            params.setdefault("identity", cls.render(cls.IDENTITY_TEMPLATE))
        return cls._env.from_string(cls._load_template(name)).render(**params).strip()
