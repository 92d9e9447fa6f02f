"""AI-assisted flashcard generation backed by OpenRouter chat completions."""

__version__ = "0.1.0"
