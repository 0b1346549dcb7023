"""Model registry and gateway exports."""

from .gateway import ModelGateway, ModelResponse, message_text
from .registry import ModelRegistry, ModelRole, ModelSpec, build_default_registry

__all__ = [
    "ModelGateway",
    "ModelResponse",
    "ModelRegistry",
    "ModelRole",
    "ModelSpec",
    "build_default_registry",
    "message_text",
]
