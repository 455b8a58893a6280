"""
watcher/llm — local language-model adapters.
"""

from watcher.llm.base import LLMAdapter
from watcher.llm.ollama_adapter import OllamaAdapter

__all__ = ["LLMAdapter", "OllamaAdapter"]
