"""Configuration exports."""

from .settings import (
    GovernanceSettings,
    MemorySettings,
    ModelRoutingSettings,
    ObservabilitySettings,
    Settings,
    get_settings,
)

__all__ = [
    "GovernanceSettings",
    "MemorySettings",
    "ModelRoutingSettings",
    "ObservabilitySettings",
    "Settings",
    "get_settings",
]
