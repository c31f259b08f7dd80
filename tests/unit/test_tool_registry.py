import pytest
from pydantic import BaseModel, Field

from rag_gateway.errors import ConfigurationError, ToolNotFoundError, ToolValidationError
from rag_gateway.gateway.registry import AnyInput, ToolDefinition, ToolRegistry


class EchoInput(BaseModel):
    value: int = Field(ge=1)
    label: str = Field(min_length=1)


def _handler(data: EchoInput, context) -> str:
    return str(data.value)


def test_tool_definition_validation_reports_every_field() -> None:
    registry = ToolRegistry()
    definition = registry.register_tool(
        "echo", _handler, description="echo positive int", input_schema=EchoInput
    )

    assert definition.validate_input({"value": 3, "label": "x"}).value == 3

    with pytest.raises(ToolValidationError) as excinfo:
        definition.validate_input({"value": 0, "label": ""})

    fields = {violation.field for violation in excinfo.value.violations}
    assert fields == {"value", "label"}
    assert excinfo.value.kind == "validation"


def test_duplicate_tool_registration_rejected() -> None:
    registry = ToolRegistry()
    registry.register_tool("echo", _handler, input_schema=EchoInput)

    with pytest.raises(ConfigurationError):
        registry.register_tool("echo", _handler, input_schema=EchoInput)


@pytest.mark.parametrize("name", ["", "   "])
def test_tool_without_name_rejected(name: str) -> None:
    with pytest.raises(ConfigurationError):
        ToolRegistry().register_tool(name, _handler)


def test_tool_without_handler_rejected() -> None:
    registry = ToolRegistry()

    with pytest.raises(ConfigurationError):
        registry.register_tool("echo", None)
    with pytest.raises(ConfigurationError):
        registry.register_tool("echo", "not callable")  # type: ignore[arg-type]
    assert "echo" not in registry


def test_non_positive_rate_limit_rejected() -> None:
    with pytest.raises(ConfigurationError):
        ToolRegistry().register_tool("echo", _handler, rate_limit_per_minute=0)


def test_defaults_and_describe() -> None:
    definition = ToolRegistry().register_tool("echo", _handler, input_schema=EchoInput)

    assert definition.rate_limit_per_minute == 100
    assert definition.auth == ("any",)
    assert definition.enabled is True

    described = definition.describe()
    assert described["name"] == "echo"
    assert described["auth"] == ["any"]
    assert set(described["input_schema"]["properties"]) == {"value", "label"}


def test_schemaless_tool_accepts_any_object() -> None:
    definition = ToolRegistry().register_tool("free", _handler)

    assert definition.input_schema is AnyInput
    validated = definition.validate_input({"anything": 1})
    assert validated.model_dump() == {"anything": 1}


def test_enable_disable_keeps_definition_frozen() -> None:
    registry = ToolRegistry()
    original = registry.register_tool("echo", _handler)

    registry.disable("echo")
    assert registry.get("echo").enabled is False
    assert original.enabled is True
    assert registry.definitions() == []
    assert [d.name for d in registry.definitions(include_disabled=True)] == ["echo"]

    registry.enable("echo")
    assert registry.get("echo").enabled is True
    assert len(registry) == 1


def test_toggling_unknown_tool_raises() -> None:
    with pytest.raises(ToolNotFoundError):
        ToolRegistry().disable("missing")


def test_direct_definition_requires_handler() -> None:
    with pytest.raises(ConfigurationError):
        ToolDefinition(name="echo", handler=None)
