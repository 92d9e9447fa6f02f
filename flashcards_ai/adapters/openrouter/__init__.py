"""OpenRouter chat completions adapter for flashcard generation."""

from flashcards_ai.adapters.openrouter.exceptions import ErrorKind, OpenRouterServiceError
from flashcards_ai.adapters.openrouter.openrouter_client import API_URL, OpenRouterClient

__all__ = ["API_URL", "ErrorKind", "OpenRouterClient", "OpenRouterServiceError"]
