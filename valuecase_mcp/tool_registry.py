"""
Static catalog of the tools this server exposes and their argument rules.
"""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from .errors import InvalidArgumentsError, UnknownToolError
from .models import ToolDefinition

logger = logging.getLogger(__name__)

# JSON Schema primitive type -> accepted Python types
_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list, tuple),
}


def _space_id_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"spaceId": {"type": "string", "description": "ID of the space"}},
        "required": ["spaceId"],
    }


def _form_id_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"formId": {"type": "string", "description": "ID of the form"}},
        "required": ["formId"],
    }


LIST_SPACES_TOOL = ToolDefinition(
    name="valuecase_list_spaces",
    description="List all spaces available to the user.",
    input_schema={"type": "object", "properties": {}, "additionalProperties": False},
)

GET_SPACE_TOOL = ToolDefinition(
    name="valuecase_get_space",
    description="Get details of a specific space by ID.",
    input_schema=_space_id_schema(),
)

LIST_FORMS_TOOL = ToolDefinition(
    name="valuecase_list_forms",
    description="List all forms in a specific space.",
    input_schema=_space_id_schema(),
)

GET_FORM_TOOL = ToolDefinition(
    name="valuecase_get_form",
    description="Get details of a specific form by ID.",
    input_schema=_form_id_schema(),
)

GET_FORM_CONTENT_TOOL = ToolDefinition(
    name="valuecase_get_form_content",
    description="Get all content from a specific form by ID.",
    input_schema=_form_id_schema(),
)

DEFAULT_TOOLS: tuple[ToolDefinition, ...] = (
    LIST_SPACES_TOOL,
    GET_SPACE_TOOL,
    LIST_FORMS_TOOL,
    GET_FORM_TOOL,
    GET_FORM_CONTENT_TOOL,
)


def _matches_type(value: Any, json_type: str | None) -> bool:
    if json_type is None:
        return True
    accepted = _JSON_TYPES.get(json_type)
    if accepted is None:
        return True
    # bool is an int subclass; JSON keeps them apart
    if json_type in ("integer", "number") and isinstance(value, bool):
        return False
    return isinstance(value, accepted)


class ToolRegistry:
    """Immutable name -> ToolDefinition lookup that preserves registration order"""

    def __init__(self, definitions: Iterable[ToolDefinition]):
        ordered = tuple(definition.model_copy(deep=True) for definition in definitions)
        by_name: dict[str, ToolDefinition] = {}
        for definition in ordered:
            if definition.name in by_name:
                raise ValueError(f"Duplicate tool name: {definition.name}")
            by_name[definition.name] = definition

        self._ordered = ordered
        self._by_name: Mapping[str, ToolDefinition] = MappingProxyType(by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._ordered)

    def list_tools(self) -> list[ToolDefinition]:
        # Deep copies: frozen models still hold mutable schema dicts
        return [definition.model_copy(deep=True) for definition in self._ordered]

    def get(self, name: str) -> ToolDefinition | None:
        definition = self._by_name.get(name)
        return None if definition is None else definition.model_copy(deep=True)

    def validate(self, name: str, arguments: Mapping[str, Any] | None) -> None:
        """
        Check that a tool exists and its arguments satisfy the declared schema

        Args:
            name: Tool name from the invocation
            arguments: Invocation arguments (None is treated as empty)

        Raises:
            UnknownToolError: If no tool with this name is registered
            InvalidArgumentsError: If a required argument is missing, or any declared
                argument has the wrong primitive type
        """
        definition = self._by_name.get(name)
        if definition is None:
            raise UnknownToolError(name)

        arguments = arguments or {}
        properties = definition.properties

        for arg_name in definition.required:
            declared_type = properties.get(arg_name, {}).get("type")
            if arg_name not in arguments or not _matches_type(arguments[arg_name], declared_type):
                logger.debug(f"Rejected {name}: missing or invalid {arg_name}")
                raise InvalidArgumentsError(f"Missing or invalid {arg_name}")

        for arg_name, value in arguments.items():
            if arg_name in properties and not _matches_type(value, properties[arg_name].get("type")):
                raise InvalidArgumentsError(f"Missing or invalid {arg_name}")


def default_registry() -> ToolRegistry:
    """The Valuecase spaces/forms catalog"""
    return ToolRegistry(DEFAULT_TOOLS)
