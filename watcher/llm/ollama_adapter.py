"""
watcher/llm/ollama_adapter.py
Ollama backend adapter. Talks to a local `ollama serve` over HTTP.
Supports any model pulled via `ollama pull <model>`.

Uses the chat endpoint in JSON mode with temperature 0 so the same
transcript yields the same extraction. Local inference can be slow —
the default timeout is two minutes.
"""

import json
import logging
import socket
import urllib.error
import urllib.request
from typing import List

from watcher.errors import ClassifierNetworkError, ClassifierParseError
from watcher.llm.base import LLMAdapter

logger = logging.getLogger(__name__)


class OllamaAdapter(LLMAdapter):

    def __init__(
        self,
        model:       str   = 'deepseek-r1:latest',
        host:        str   = 'http://localhost:11434',
        timeout_sec: float = 120,
        temperature: float = 0,
    ):
        self.model       = model
        self.host        = host.rstrip('/')
        self.timeout_sec = timeout_sec
        self.temperature = temperature

    # ── AVAILABILITY CHECK ───────────────────────────────────
    def is_available(self) -> bool:
        """Ping Ollama and confirm the configured model is pulled."""
        try:
            models = self._fetch_tags()
        except urllib.error.URLError:
            logger.warning(
                "Ollama not reachable at " + self.host +
                ". Start Ollama or check if it's running."
            )
            return False
        except (OSError, ValueError) as e:
            logger.warning(f"Ollama availability check failed: {e}")
            return False

        # Exact match or family match (e.g. "llama3" matches "llama3:8b-instruct")
        available = any(
            m == self.model or m.startswith(self.model.split(':')[0])
            for m in models
        )
        if not available:
            logger.warning(
                f"Model '{self.model}' not found in Ollama. "
                f"Available: {models}. "
                f"Run: ollama pull {self.model}"
            )
        return available

    def list_available_models(self) -> List[str]:
        """Return list of locally available Ollama model names."""
        try:
            return self._fetch_tags()
        except (OSError, ValueError):
            return []

    def _fetch_tags(self) -> List[str]:
        req = urllib.request.Request(f"{self.host}/api/tags", method='GET')
        with urllib.request.urlopen(req, timeout=5) as resp:
            data = json.loads(resp.read().decode())
        return [m['name'] for m in data.get('models', [])]

    # ── CHAT ─────────────────────────────────────────────────
    def build_payload(self, prompt: str) -> dict:
        return {
            'model':    self.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'format':   'json',     # Ollama JSON mode
            'stream':   False,
            'options':  {'temperature': self.temperature},
        }

    def chat(self, prompt: str) -> str:
        payload = json.dumps(self.build_payload(prompt)).encode('utf-8')
        req = urllib.request.Request(
            f"{self.host}/api/chat",
            data    = payload,
            headers = {'Content-Type': 'application/json'},
            method  = 'POST',
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            raise ClassifierNetworkError(f"Ollama returned HTTP {e.code}") from e
        except urllib.error.URLError as e:
            raise ClassifierNetworkError(f"Ollama request failed: {e.reason}") from e
        except (socket.timeout, TimeoutError) as e:
            raise ClassifierNetworkError(
                f"Ollama did not answer within {self.timeout_sec}s"
            ) from e
        except OSError as e:
            raise ClassifierNetworkError(f"Ollama connection error: {e}") from e

        try:
            raw = body.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ClassifierParseError(f"Ollama response is not valid UTF-8: {e}") from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ClassifierParseError(f"JSON decode failed in Ollama response: {e}") from e

        message = data.get('message') if isinstance(data, dict) else None
        content = message.get('content') if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ClassifierParseError("Ollama response has no message.content")
        return content
