"""
watcher — iMessage Watcher.

Reads new messages from one contact out of the local Messages store,
classifies them with a local Ollama model, and turns commitments into
calendar events and reminders.
"""

__version__ = "2.0.0"
