from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from pydantic import BaseModel


@dataclass(frozen=True)
class IntegrationFunction:
    name: str
    description: str
    category: str
    schema: dict[str, object]
    params_model: type[BaseModel]

    def required_fields(self) -> tuple[str, ...]:
        required = self.schema.get("required")
        if not isinstance(required, list):
            return ()
        return tuple(field for field in required if isinstance(field, str))

    def to_tool_schema(self) -> dict[str, object]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.schema,
            },
        }

    def matches(self, needle: str) -> bool:
        return (
            needle in self.name.lower()
            or needle in self.description.lower()
            or needle in self.category.lower()
        )


class IntegrationRegistry:
    def __init__(self) -> None:
        self._functions: dict[str, IntegrationFunction] = {}

    def register(self, function: IntegrationFunction) -> None:
        if function.name in self._functions:
            raise ValueError(f"Function '{function.name}' is already registered.")
        self._functions[function.name] = function

    def list(self) -> list[IntegrationFunction]:
        return list(self._functions.values())

    def names(self) -> list[str]:
        return list(self._functions.keys())

    def find(self, name: str) -> IntegrationFunction | None:
        return self._functions.get(name)

    def search(self, query: str) -> Iterator[IntegrationFunction]:
        needle = (query or "").strip().lower()
        if not needle:
            return
        for function in self._functions.values():
            if function.matches(needle):
                yield function

    def tool_schema(self) -> list[dict[str, object]]:
        return [function.to_tool_schema() for function in self._functions.values()]
