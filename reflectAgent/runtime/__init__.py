"""Runtime wiring."""

from .app import build_application, build_gateways
from .model_resolver import build_model_resolver, resolve_model_configs

__all__ = ["build_application", "build_gateways", "build_model_resolver", "resolve_model_configs"]
