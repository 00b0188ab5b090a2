"""
Tool registry.

One catalog keyed by tool name. Each entry pairs a pydantic argument model
with the coroutine that executes validated arguments under a SecurityContext.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from .context import SecurityContext

ToolExecutor = Callable[[BaseModel, SecurityContext], Awaitable[Any]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: type[BaseModel]
    execute: ToolExecutor

    def json_schema(self) -> dict[str, Any]:
        schema = self.args_model.model_json_schema()
        schema.pop('title', None)
        return schema

    def describe(self, schema_key: str = 'parameters') -> dict[str, Any]:
        return {'name': self.name, 'description': self.description, schema_key: self.json_schema()}


class ToolRegistry:
    def __init__(self, specs: list[ToolSpec] | None = None):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            raise ValueError(f'Tool already registered: {spec.name}')
        self._specs[spec.name] = spec

    def get(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    @property
    def names(self) -> list[str]:
        return list(self._specs)

    def catalog(self, enabled_tools: list[str]) -> list[ToolSpec]:
        """Enabled tools that exist in the registry; unknown names are dropped silently."""
        return [self._specs[name] for name in enabled_tools if name in self._specs]
