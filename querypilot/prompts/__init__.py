"""Prompt templates and the loader that renders them."""

from querypilot.prompts.loader import PromptLoader

__all__ = ["PromptLoader"]
