"""Wiki LLM package: page indexing and LLM-assisted page editing."""

from .config import Settings
from .errors import WikiLlmError

__all__ = ["Settings", "WikiLlmError"]
