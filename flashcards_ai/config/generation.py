from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SYSTEM_MESSAGE = (
    "You are an assistant that writes study flashcards. Read the user's text and "
    "produce concise question/answer pairs covering its key facts and concepts. "
    'Respond ONLY with a JSON object of the form {"flashcards": '
    '[{"front": "<question>", "back": "<answer>"}]}.'
)
DEFAULT_MODEL = "openai/gpt-4o-mini"

FLASHCARDS_SCHEMA: dict[str, Any] = {
    "flashcards": [{"front": "string", "back": "string"}],
}

JSON_RESPONSE_TYPES = frozenset({"json_object", "json_schema"})

ModelParamValue = float | int | str | bool


class JsonSchemaFormat(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str
    strict: bool = True
    schema_: dict[str, Any] = Field(default_factory=dict, alias="schema")


class ResponseFormat(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = "json_object"
    json_schema: JsonSchemaFormat | None = None

    @property
    def is_json(self) -> bool:
        return self.type in JSON_RESPONSE_TYPES

    @property
    def is_strict(self) -> bool:
        return self.json_schema is not None and self.json_schema.strict

    def to_payload(self) -> dict[str, Any]:
        """Wire representation for the ``response_format`` request field."""
        return self.model_dump(by_alias=True, exclude_none=True)


class GenerationConfig(BaseModel):
    """Immutable settings applied to every generation request of a client."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    system_message: str = DEFAULT_SYSTEM_MESSAGE
    model_name: str = DEFAULT_MODEL
    model_params: dict[str, ModelParamValue] = Field(
        default_factory=lambda: {"temperature": 0.7, "max_tokens": 1500, "top_p": 1.0}
    )
    response_format: ResponseFormat = Field(
        default_factory=lambda: ResponseFormat(
            type="json_object",
            json_schema=JsonSchemaFormat(
                name="flashcards", strict=True, schema=copy.deepcopy(FLASHCARDS_SCHEMA)
            ),
        )
    )

    def merge(self, partial: Mapping[str, Any] | GenerationConfig | None) -> GenerationConfig:
        """Return a new config with ``partial`` applied on top of this one.

        Top-level keys override; ``model_params`` and ``response_format`` are merged
        key by key. Neither ``self`` nor ``partial`` is mutated, and the result
        shares no nested containers with either of them.
        """
        if partial is None:
            return self.model_copy(deep=True)

        updates = _as_dict(partial)
        current = self.model_dump(by_alias=True)

        for key in ("model_params", "response_format"):
            value = updates.pop(key, None)
            if value is not None:
                updates[key] = {**current[key], **_as_dict(value)}

        return GenerationConfig.model_validate({**current, **updates})


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_unset=True)
    if isinstance(value, Mapping):
        return copy.deepcopy(dict(value))
    msg = f"Expected a mapping or model, got {type(value).__name__}"
    raise TypeError(msg)
