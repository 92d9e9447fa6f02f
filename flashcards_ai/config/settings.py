from __future__ import annotations

import os
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._validators import ensure_api_key, validate_model_name
from .generation import DEFAULT_MODEL


class OpenRouterSettings(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_key: str = Field(..., validation_alias="OPENROUTER_API_KEY")
    model: str = Field(default=DEFAULT_MODEL, validation_alias="OPENROUTER_MODEL")
    http_referer: str | None = Field(default=None, validation_alias="OPENROUTER_HTTP_REFERER")
    x_title: str | None = Field(default=None, validation_alias="OPENROUTER_X_TITLE")
    timeout_sec: float = Field(default=60.0, validation_alias="OPENROUTER_TIMEOUT_SEC")
    max_attempts: int = Field(default=3, validation_alias="OPENROUTER_MAX_ATTEMPTS")
    retry_base_delay: float = Field(default=1.0, validation_alias="OPENROUTER_RETRY_BASE_DELAY")
    temperature: float | None = Field(default=None, validation_alias="OPENROUTER_TEMPERATURE")
    max_tokens: int | None = Field(default=None, validation_alias="OPENROUTER_MAX_TOKENS")
    top_p: float | None = Field(default=None, validation_alias="OPENROUTER_TOP_P")

    @field_validator("api_key", mode="before")
    @classmethod
    def _validate_api_key(cls, value: Any) -> str:
        return ensure_api_key(str(value or ""), name="OpenRouter")

    @field_validator("model", mode="before")
    @classmethod
    def _validate_model(cls, value: Any) -> str:
        return validate_model_name(str(value or DEFAULT_MODEL).strip())

    @field_validator("http_referer", "x_title", mode="before")
    @classmethod
    def _validate_header(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        header = str(value).strip()
        if len(header) > 500:
            msg = "Header value too long (max 500 characters)"
            raise ValueError(msg)
        return header

    @field_validator("timeout_sec")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            msg = "Timeout must be positive"
            raise ValueError(msg)
        if value > 300:
            msg = "Timeout too large (max 300 seconds)"
            raise ValueError(msg)
        return value

    @field_validator("max_attempts")
    @classmethod
    def _validate_attempts(cls, value: int) -> int:
        if value < 1 or value > 10:
            msg = f"Max attempts must be between 1 and 10 (got {value})"
            raise ValueError(msg)
        return value

    @field_validator("retry_base_delay")
    @classmethod
    def _validate_base_delay(cls, value: float) -> float:
        if value < 0:
            msg = "Retry base delay must be non-negative"
            raise ValueError(msg)
        return value

    @field_validator("temperature")
    @classmethod
    def _validate_temperature(cls, value: float | None) -> float | None:
        if value is not None and not 0 <= value <= 2:
            msg = f"Temperature must be between 0 and 2, got {value}"
            raise ValueError(msg)
        return value

    @field_validator("max_tokens")
    @classmethod
    def _validate_max_tokens(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            msg = f"Max tokens must be a positive integer, got {value}"
            raise ValueError(msg)
        return value

    @field_validator("top_p")
    @classmethod
    def _validate_top_p(cls, value: float | None) -> float | None:
        if value is not None and not 0 <= value <= 1:
            msg = f"Top_p must be between 0 and 1, got {value}"
            raise ValueError(msg)
        return value


class RuntimeSettings(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    use_loguru: bool = Field(default=True, validation_alias="LOG_USE_LOGURU")
    debug_payloads: bool = Field(default=False, validation_alias="DEBUG_PAYLOADS")
    log_truncate_length: int = Field(default=1000, validation_alias="LOG_TRUNCATE_LENGTH")

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        log_level = str(value or "INFO").upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_levels:
            msg = f"Invalid log level: {value}. Must be one of {sorted(valid_levels)}"
            raise ValueError(msg)
        return log_level

    @field_validator("log_truncate_length")
    @classmethod
    def _validate_truncate_length(cls, value: int) -> int:
        if value <= 0:
            msg = "Log truncate length must be positive"
            raise ValueError(msg)
        return value


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    openrouter: OpenRouterSettings
    runtime: RuntimeSettings

    def generation_overrides(self) -> dict[str, Any]:
        """Partial GenerationConfig derived from the environment."""
        params: dict[str, Any] = {}
        if self.openrouter.temperature is not None:
            params["temperature"] = self.openrouter.temperature
        if self.openrouter.max_tokens is not None:
            params["max_tokens"] = self.openrouter.max_tokens
        if self.openrouter.top_p is not None:
            params["top_p"] = self.openrouter.top_p

        overrides: dict[str, Any] = {"model_name": self.openrouter.model}
        if params:
            overrides["model_params"] = params
        return overrides


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Nested models are populated by matching ``validation_alias`` on each field.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    openrouter: OpenRouterSettings
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)

    @model_validator(mode="before")
    @classmethod
    def _build_nested_from_env(cls, data: Any) -> Any:
        """Build nested config objects from flat environment variables.

        Constructor arguments take precedence over ``os.environ``.
        """
        if not isinstance(data, dict):
            return data

        result = dict(data)
        merged_source = {**os.environ, **data}

        for field_name, field_info in cls.model_fields.items():
            annotation = field_info.annotation
            if not isinstance(annotation, type) or not issubclass(annotation, BaseModel):
                continue

            nested_data: dict[str, Any] = {}
            for nested_field_name, nested_field in annotation.model_fields.items():
                env_value = cls._resolve_env_value(merged_source, nested_field)
                if env_value is not None:
                    nested_data[nested_field_name] = env_value

            if nested_data:
                if isinstance(result.get(field_name), dict):
                    result[field_name] = {**nested_data, **result[field_name]}
                else:
                    result[field_name] = nested_data

        return result

    @staticmethod
    def _resolve_env_value(data: dict[str, Any], field: Any) -> Any | None:
        """Resolve an environment value for a field using its aliases."""
        aliases: list[str] = []
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            aliases.extend(choice for choice in alias.choices if isinstance(choice, str))
        elif isinstance(alias, str):
            aliases.append(alias)
        if field.alias:
            aliases.append(field.alias)

        for name in aliases:
            if name in data:
                return data[name]
        return None

    def as_app_config(self) -> AppConfig:
        return AppConfig(openrouter=self.openrouter, runtime=self.runtime)


def load_config(**overrides: Any) -> AppConfig:
    """Load application configuration from environment variables.

    ``overrides`` are keyed by environment variable name (``OPENROUTER_MODEL=...``)
    and win over the process environment.

    Raises:
        RuntimeError: If configuration validation fails.

    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise RuntimeError(msg) from exc
    return settings.as_app_config()
