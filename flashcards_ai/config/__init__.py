from .generation import (
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_MESSAGE,
    FLASHCARDS_SCHEMA,
    GenerationConfig,
    JsonSchemaFormat,
    ResponseFormat,
)
from .settings import AppConfig, OpenRouterSettings, RuntimeSettings, Settings, load_config

__all__ = [
    "DEFAULT_MODEL",
    "DEFAULT_SYSTEM_MESSAGE",
    "FLASHCARDS_SCHEMA",
    "AppConfig",
    "GenerationConfig",
    "JsonSchemaFormat",
    "OpenRouterSettings",
    "ResponseFormat",
    "RuntimeSettings",
    "Settings",
    "load_config",
]
