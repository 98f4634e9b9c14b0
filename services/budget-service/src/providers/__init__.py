"""Pluggable backend implementations for text generation."""

from .openai_text import OpenAITextGenerator

__all__ = ["OpenAITextGenerator"]
