"""Model management utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Literal, Optional

from reflectAgent.config.settings import ModelRoutingSettings

ModelRole = Literal["planner", "executor", "reflector", "summarizer", "chat"]


@dataclass(frozen=True, slots=True)
class ModelSpec:
    """Normalized description of the endpoint and sampling used by one role."""

    key: ModelRole
    model_id: str
    temperature: float
    max_tokens: int
    can_tools: bool


class ModelRegistry:
    """Central registry for per-role model specs."""

    def __init__(self, specs: Optional[Iterable[ModelSpec]] = None) -> None:
        self._specs: Dict[str, ModelSpec] = {}
        if specs:
            for spec in specs:
                self.register(spec)

    def register(self, spec: ModelSpec) -> None:
        """Store a spec under its key."""

        self._specs[spec.key] = spec

    def get(self, key: str) -> ModelSpec:
        """Return the spec for a given role."""

        if key not in self._specs:
            raise KeyError(f"Unknown model role: {key}")
        return self._specs[key]

    def roles(self) -> list[str]:
        return list(self._specs)


def build_default_registry(models: ModelRoutingSettings) -> ModelRegistry:
    """Instantiate the registry with per-role sampling drawn from configuration.

    Planning is kept low-temperature for consistent structure, the reflector
    lower still, and chat uses the configured default temperature.
    """

    return ModelRegistry(
        [
            ModelSpec(
                key="planner",
                model_id=models.model_id,
                temperature=models.planner_temperature,
                max_tokens=models.max_output_tokens,
                can_tools=False,
            ),
            ModelSpec(
                key="executor",
                model_id=models.model_id,
                temperature=models.executor_temperature,
                max_tokens=models.max_output_tokens,
                can_tools=True,
            ),
            ModelSpec(
                key="reflector",
                model_id=models.model_id,
                temperature=models.reflector_temperature,
                max_tokens=models.reflector_max_tokens,
                can_tools=False,
            ),
            ModelSpec(
                key="summarizer",
                model_id=models.model_id,
                temperature=models.summarizer_temperature,
                max_tokens=models.summarizer_max_tokens,
                can_tools=False,
            ),
            ModelSpec(
                key="chat",
                model_id=models.model_id,
                temperature=models.temperature,
                max_tokens=models.max_output_tokens,
                can_tools=True,
            ),
        ]
    )
