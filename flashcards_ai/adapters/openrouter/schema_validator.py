"""Minimal recursive validator for declarative response shape descriptors.

A schema node is one of:

* a primitive tag: ``"string"``, ``"number"`` or ``"boolean"``
* a mapping of field name to node (a dict with at least those keys)
* a one-element list ``[node]`` (a list whose every element matches ``node``)

Anything else accepts any value. Extra keys in the data are ignored.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flashcards_ai.adapters.openrouter.exceptions import ErrorKind, OpenRouterServiceError

_MISSING = object()


def _type_name(value: Any) -> str:
    if value is _MISSING:
        return "missing"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


def _matches_primitive(tag: str, value: Any) -> bool:
    if tag == "string":
        return isinstance(value, str)
    if tag == "number":
        return isinstance(value, int | float) and not isinstance(value, bool)
    if tag == "boolean":
        return isinstance(value, bool)
    return True


def _fail(path: str, expected: str, value: Any) -> OpenRouterServiceError:
    shown_path = path or "<root>"
    actual = _type_name(value)
    return OpenRouterServiceError(
        ErrorKind.SCHEMA_VALIDATION_ERROR,
        f"Response does not match expected schema at '{shown_path}': "
        f"expected {expected}, got {actual}",
        details={"path": shown_path, "expected": expected, "actual": actual},
    )


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _check(value: Any, node: Any, path: str) -> None:
    if isinstance(node, str):
        if node in {"string", "number", "boolean"} and not _matches_primitive(node, value):
            raise _fail(path, node, value)
        return

    if isinstance(node, Mapping):
        if not isinstance(value, Mapping):
            raise _fail(path, "object", value)
        for key, child in node.items():
            child_value = value.get(key, _MISSING)
            child_path = _join(path, str(key))
            if child_value is _MISSING:
                if _accepts_anything(child):
                    continue
                raise _fail(child_path, _describe(child), _MISSING)
            _check(child_value, child, child_path)
        return

    if isinstance(node, list) and len(node) == 1:
        if not isinstance(value, list):
            raise _fail(path, "array", value)
        for index, item in enumerate(value):
            _check(item, node[0], f"{path}[{index}]")
        return

    # Untyped node: escape hatch for provider-specific metadata.


def _accepts_anything(node: Any) -> bool:
    if isinstance(node, str):
        return node not in {"string", "number", "boolean"}
    if isinstance(node, Mapping):
        return False
    return not (isinstance(node, list) and len(node) == 1)


def _describe(node: Any) -> str:
    if isinstance(node, str):
        return node
    if isinstance(node, Mapping):
        return "object"
    return "array"


def validate_schema(data: Any, schema: Mapping[str, Any]) -> Any:
    """Validate ``data`` against ``schema`` and return it unchanged.

    Raises:
        OpenRouterServiceError: ``SCHEMA_VALIDATION_ERROR`` with the offending path in
            ``details["path"]`` (e.g. ``flashcards[1].back``).
    """
    _check(data, schema, "")
    return data
