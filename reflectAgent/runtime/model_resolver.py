"""Default model resolver wiring using environment-derived settings.

Converts the model settings into a resolver function that creates ChatOpenAI
instances on demand. OpenRouter is reached through its OpenAI-compatible API.

Key Functions:
    - resolve_model_configs(): Extract the endpoint config from settings
    - build_model_resolver(): Create a resolver that returns model instances

The resolver pattern keeps instantiation lazy (credentials are only checked
when a role makes its first call) and lets tests inject fakes.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, TypedDict

from langchain_openai import ChatOpenAI

from reflectAgent.config.settings import Settings

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class ModelConfig(TypedDict):
    id: str
    provider: str
    api_key: Optional[str]
    base_url: Optional[str]
    timeout: float


def resolve_model_configs(settings: Settings) -> Dict[str, ModelConfig]:
    """Build normalized model configs (id + credentials) from settings.

    Args:
        settings: Application settings loaded from .env

    Returns:
        Dict keyed by model id
    """
    models = settings.models
    base_url = models.base_url
    if not base_url and models.provider.lower() == "openrouter":
        base_url = OPENROUTER_BASE_URL

    return {
        models.model_id: {
            "id": models.model_id,
            "provider": models.provider,
            "api_key": models.api_key,
            "base_url": base_url,
            "timeout": models.request_timeout,
        }
    }


def _chat_kwargs(config: ModelConfig, temperature: Optional[float], max_tokens: Optional[int]) -> Dict[str, object]:
    if not config["api_key"]:
        raise RuntimeError(f"Missing API key for model {config['id']}, set MODEL_API_KEY in .env")
    kwargs: Dict[str, object] = {
        "model": config["id"],
        "api_key": config["api_key"],
        "timeout": config["timeout"],
    }
    if temperature is not None:
        kwargs["temperature"] = temperature
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens
    if config["base_url"]:
        kwargs["base_url"] = config["base_url"]
    return kwargs


def build_model_resolver(model_configs: Dict[str, ModelConfig]) -> Callable[..., ChatOpenAI]:
    """Construct a resolver that returns ChatOpenAI-compatible clients.

    Args:
        model_configs: Dict of model configurations from resolve_model_configs()

    Returns:
        Function ``resolver(model_id, temperature=None, max_tokens=None)``

    Raises:
        KeyError: If requested model_id is not in the configuration
        RuntimeError: If the API key is missing

    Example:
        >>> resolver = build_model_resolver(resolve_model_configs(get_settings()))
        >>> chat_model = resolver("gpt-4o-mini", temperature=0.3)
    """

    def resolver(model_id: str, temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> ChatOpenAI:
        if model_id not in model_configs:
            raise KeyError(f"Model {model_id} is not configured")
        return ChatOpenAI(**_chat_kwargs(model_configs[model_id], temperature, max_tokens))

    return resolver
