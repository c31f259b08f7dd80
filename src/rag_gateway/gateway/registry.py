"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from rag_gateway.errors import (
    ConfigurationError,
    FieldViolation,
    ToolNotFoundError,
    ToolValidationError,
)
from rag_gateway.obs.logging_config import get_logger

logger = get_logger(__name__)

ANY_ROLE = "any"


class AnyInput(BaseModel):
    """Permissive schema for tools registered without one."""

    model_config = ConfigDict(extra="allow")


class ToolDefinition(BaseModel):
    """Declarative tool definition. Only ``enabled`` changes after registration."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    description: str = ""
    input_schema: type[BaseModel] = AnyInput
    auth: tuple[str, ...] = (ANY_ROLE,)
    handler: Callable[[Any, Any], Any]
    rate_limit_per_minute: int = Field(default=100, ge=1)
    enabled: bool = True

    @model_validator(mode="before")
    @classmethod
    def _require_name_and_handler(cls, data: Any) -> Any:
        if isinstance(data, dict):
            name = data.get("name")
            if not isinstance(name, str) or not name.strip():
                raise ConfigurationError("Tool must have a non-empty name")
            if data.get("handler") is None:
                raise ConfigurationError(f"Tool {name} must have a handler")
            if not callable(data["handler"]):
                raise ConfigurationError(f"Tool {name} handler is not callable")
        return data

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema.model_json_schema(),
            "auth": list(self.auth),
        }

    def validate_input(self, payload: Any) -> BaseModel:
        """Validate ``payload`` and report every offending field at once."""
        try:
            return self.input_schema.model_validate(payload)
        except ValidationError as exc:
            violations = [
                FieldViolation(
                    field=".".join(str(part) for part in error["loc"]) or "(root)",
                    message=error["msg"],
                )
                for error in exc.errors()
            ]
            raise ToolValidationError(self.name, violations) from exc


class ToolRegistry:
    """Holds tool definitions for one gateway, keyed by unique name."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, definition: ToolDefinition) -> ToolDefinition:
        if definition.name in self._tools:
            raise ConfigurationError(f"Tool already registered: {definition.name}")
        self._tools[definition.name] = definition
        logger.debug("tool_registered", tool=definition.name)
        return definition

    def register_tool(
        self,
        name: str,
        handler: Callable[[Any, Any], Any] | None,
        *,
        description: str = "",
        input_schema: type[BaseModel] | None = None,
        auth: tuple[str, ...] | list[str] | None = None,
        rate_limit_per_minute: int = 100,
    ) -> ToolDefinition:
        payload: dict[str, Any] = {
            "name": name,
            "handler": handler,
            "description": description,
            "rate_limit_per_minute": rate_limit_per_minute,
        }
        if input_schema is not None:
            payload["input_schema"] = input_schema
        if auth:
            payload["auth"] = tuple(auth)
        try:
            definition = ToolDefinition(**payload)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid tool definition {name!r}: {exc}") from exc
        return self.register(definition)

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def enable(self, name: str) -> None:
        self._set_enabled(name, True)

    def disable(self, name: str) -> None:
        self._set_enabled(name, False)

    def definitions(self, *, include_disabled: bool = False) -> list[ToolDefinition]:
        return [
            definition
            for definition in self._tools.values()
            if include_disabled or definition.enabled
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def _set_enabled(self, name: str, enabled: bool) -> None:
        definition = self._tools.get(name)
        if definition is None:
            raise ToolNotFoundError(name)
        self._tools[name] = definition.model_copy(update={"enabled": enabled})
        logger.info("tool_state_changed", tool=name, enabled=enabled)
