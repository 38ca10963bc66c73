"""Ollama infrastructure package."""

from .ollama_backend import OllamaBackend

__all__ = ["OllamaBackend"]
