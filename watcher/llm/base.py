"""
watcher/llm/base.py
Abstract base class for all LLM adapters.
To add a new backend: subclass LLMAdapter and implement chat().
"""

from abc import ABC, abstractmethod
from typing import List


class LLMAdapter(ABC):
    """
    All LLM backends implement this interface.
    The classifier calls chat() with a fully built prompt and gets back the
    model's raw reply text. The caller never knows which backend is running.
    """

    model: str = ''

    @abstractmethod
    def is_available(self) -> bool:
        """
        Returns True if the backend is reachable and the model is present.
        Used for status display only — a scan does not require it.
        """
        ...

    @abstractmethod
    def chat(self, prompt: str) -> str:
        """
        Send one user prompt, block until the reply or the timeout.
        Returns the reply content as text.
        Raises ClassifierNetworkError on transport failure or timeout,
        ClassifierParseError if the backend's own response is malformed.
        """
        ...

    def list_available_models(self) -> List[str]:
        """Backends that cannot enumerate models return an empty list."""
        return []
