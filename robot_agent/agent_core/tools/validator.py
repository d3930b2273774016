from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, List

from .base import ToolParameterProperty, ToolParameters
from .registry import ToolRegistry


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _validate_property(value: Any, prop: ToolParameterProperty, path: str) -> List[str]:
    if value is None:
        return []

    actual = _type_name(value)
    if actual != prop.type:
        return [f"{path}: expected {prop.type}, got {actual}"]

    errors: List[str] = []
    if prop.enum is not None and value not in prop.enum:
        errors.append(f"{path}: value must be one of [{', '.join(prop.enum)}]")

    if prop.type == "array" and prop.items is not None:
        for index, item in enumerate(value):
            errors.extend(_validate_property(item, prop.items, f"{path}[{index}]"))

    if prop.type == "object" and prop.properties:
        for key, nested in prop.properties.items():
            if key in value:
                errors.extend(_validate_property(value[key], nested, f"{path}.{key}"))

    return errors


class ToolValidator:
    """
    Structural parameter validation against a tool's declared schema.

    Validation only inspects its inputs; it never mutates parameters or
    touches the registry.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    def validate(self, tool_name: str, params: Any) -> ValidationResult:
        tool = self._registry.find(tool_name)
        if tool is None:
            return ValidationResult(valid=False, errors=[f"Tool not found: {tool_name}"])
        return self.validate_schema(params, tool.parameters)

    def validate_schema(self, params: Any, schema: ToolParameters) -> ValidationResult:
        """
        Validate ``params`` against ``schema``.

        Required keys must be present. Every declared property that is present
        is type checked recursively; ``None`` values are skipped.
        """
        if not isinstance(params, Mapping):
            return ValidationResult(valid=False, errors=["Parameters must be an object"])

        errors: List[str] = []
        for name in schema.required:
            if name not in params:
                errors.append(f"Missing required parameter: {name}")

        for key, prop in schema.properties.items():
            if key in params:
                errors.extend(_validate_property(params[key], prop, key))

        return ValidationResult(valid=not errors, errors=errors)
