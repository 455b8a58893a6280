"""
watcher/classifier — prompt, parse and validate for message classification.
"""

from watcher.classifier.classifier import Classifier
from watcher.classifier.item_parser import (
    parse_envelope,
    strip_code_fence,
    validate_items,
)
from watcher.classifier.prompt import build_prompt

__all__ = [
    "Classifier",
    "build_prompt",
    "parse_envelope",
    "strip_code_fence",
    "validate_items",
]
